import importlib.util
import json
from pathlib import Path

import pandas as pd
import pytest

from tests.helpers import GREEN_LEAF, WHITE

SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "analyze_images.py"


@pytest.fixture
def analyze_images():
    spec = importlib.util.spec_from_file_location("analyze_images", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_run_batch(tmp_path, analyze_images, solid_image, encode_image):
    in_dir = tmp_path / "in"
    in_dir.mkdir()
    (in_dir / "leaf.png").write_bytes(encode_image(solid_image(GREEN_LEAF)))
    (in_dir / "wall.png").write_bytes(encode_image(solid_image(WHITE)))
    (in_dir / "broken.jpg").write_bytes(b"not an image")
    (in_dir / "notes.txt").write_text("ignored")

    out_dir = tmp_path / "out"
    df = analyze_images.run_batch(in_dir, out_dir)

    assert list(df['verdict']) == ["healthy", "rejected"]
    assert (out_dir / "results.csv").exists()
    assert len(pd.read_csv(out_dir / "results.csv")) == 2
    saved = json.loads((out_dir / "json" / "wall.json").read_text())
    assert saved['diseaseDetection'] is None
    assert not (out_dir / "json" / "broken.json").exists()


def test_run_batch_missing_dir(tmp_path, analyze_images):
    with pytest.raises(NotADirectoryError):
        analyze_images.run_batch(tmp_path / "missing", tmp_path / "out")
