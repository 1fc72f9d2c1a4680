#!/usr/bin/env python3
"""
analyze_images.py

Usage:
python scripts/analyze_images.py \
  --input_dir data/leaves \
  --output_dir results \
  --max-samples 100000

Runs the leaf/disease engine over every image in a folder, writes one JSON
result per image and a flat results.csv.
"""
import argparse
import json
import logging
from pathlib import Path

import pandas as pd

from disease_engine import EngineConfig, analyze_image
from pixel_features import DEFAULT_MAX_SAMPLES, DecodeError

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s')
logger = logging.getLogger("analyze_images")

IMAGE_SUFFIXES = ('.jpg', '.jpeg', '.png')


def result_row(img_path, result):
    leaf = result.leaf_detection
    disease = result.disease_detection
    return {
        'image': str(img_path),
        'verdict': result.verdict,
        'is_leaf': leaf.is_leaf,
        'leaf_confidence': leaf.confidence,
        'leaf_reason': leaf.reason,
        'disease': disease.disease_detected if disease else None,
        'disease_confidence': disease.confidence if disease else None,
        'severity': disease.severity if disease else None,
        'affected_area': disease.affected_area if disease else None,
    }


def run_batch(input_dir, output_dir, max_samples=DEFAULT_MAX_SAMPLES):
    in_dir = Path(input_dir)
    out_dir = Path(output_dir)
    if not in_dir.exists() or not in_dir.is_dir():
        raise NotADirectoryError(f"Input dir not found: {input_dir}")
    json_dir = out_dir / "json"
    json_dir.mkdir(parents=True, exist_ok=True)

    config = EngineConfig(max_samples=max_samples)
    images = sorted(p for p in in_dir.iterdir() if p.suffix.lower() in IMAGE_SUFFIXES)
    if not images:
        logger.warning("No images found in %s", in_dir)

    rows = []
    for img_path in images:
        try:
            result = analyze_image(img_path.read_bytes(), config)
        except DecodeError as e:
            logger.error("%s: %s", img_path.name, e)
            continue
        with open(json_dir / f"{img_path.stem}.json", 'w') as f:
            json.dump(result.to_dict(), f, indent=2)
        rows.append(result_row(img_path, result))
        logger.info("Processed %s -> %s", img_path.name, result.verdict)

    df = pd.DataFrame(rows, columns=['image', 'verdict', 'is_leaf', 'leaf_confidence', 'leaf_reason',
                                     'disease', 'disease_confidence', 'severity', 'affected_area'])
    csv_path = out_dir / "results.csv"
    df.to_csv(csv_path, index=False)
    logger.info("CSV saved to: %s", csv_path)
    return df


def main():
    p = argparse.ArgumentParser()
    p.add_argument('--input_dir', required=True, help="Folder with leaf images")
    p.add_argument('--output_dir', default="results", help="Output folder")
    p.add_argument('--max-samples', type=int, default=DEFAULT_MAX_SAMPLES, help="Maximum pixels inspected per image")
    args = p.parse_args()

    run_batch(args.input_dir, args.output_dir, max_samples=args.max_samples)


if __name__ == '__main__':
    main()
