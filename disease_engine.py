"""Rule-based leaf and disease classification over pixel color statistics.

The engine is a pure function of the image: decode, extract color ratios,
decide whether the image is a leaf and, if the leaf gate passes, score the
fixed disease catalog. No state is kept between calls.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from pixel_features import DEFAULT_MAX_SAMPLES, PixelFeatures, decode_image, extract_features

logger = logging.getLogger(__name__)

# --- 1. Thresholds ---
LEAF_GATE_CONFIDENCE = 0.4

TEXTURE_BRIGHTNESS_RANGE = (30.0, 220.0)

DISEASE_SCORE_THRESHOLD = 0.12
AFFECTED_AREA_FLOOR = 0.08
HIGH_SEVERITY_AREA = 0.25
MEDIUM_SEVERITY_AREA = 0.14
MAX_AFFECTED_AREA = 95

REASON_STRONG_LEAF = "Image shows strong leaf characteristics with appropriate color distribution and texture"
REASON_PARTIAL_LEAF = "Image partially matches leaf characteristics"
REASON_INSUFFICIENT = "Some plant material detected but insufficient leaf characteristics"
REASON_NOT_LEAF = "Image does not appear to be a leaf. Please upload a clear photo of a crop leaf."

SEVERITIES = ("low", "medium", "high")


@dataclass(frozen=True)
class EngineConfig:
    max_samples: int = DEFAULT_MAX_SAMPLES
    leaf_gate_confidence: float = LEAF_GATE_CONFIDENCE

    def __post_init__(self):
        if self.max_samples < 1:
            raise ValueError("max_samples must be at least 1")
        if not 0.0 <= self.leaf_gate_confidence <= 1.0:
            raise ValueError("leaf_gate_confidence must be within [0, 1]")


# --- 2. Result types ---
@dataclass(frozen=True)
class LeafDetection:
    is_leaf: bool
    confidence: float
    reason: str

    def passes_gate(self, threshold: float = LEAF_GATE_CONFIDENCE) -> bool:
        return self.is_leaf and self.confidence >= threshold

    def to_dict(self) -> Dict:
        return {"isLeaf": self.is_leaf, "confidence": self.confidence, "reason": self.reason}


@dataclass(frozen=True)
class DiseaseDetection:
    disease_detected: Optional[str] = None
    confidence: float = 0.0
    severity: Optional[str] = None
    symptoms: Tuple[str, ...] = ()
    affected_area: int = 0

    def __post_init__(self):
        if self.disease_detected is None:
            if self.severity is not None or self.symptoms or self.affected_area or self.confidence:
                raise ValueError("A healthy verdict cannot carry disease fields")
        elif self.severity not in SEVERITIES:
            raise ValueError(f"Invalid severity: {self.severity!r}")

    @classmethod
    def healthy(cls) -> "DiseaseDetection":
        return cls()

    @property
    def is_healthy(self) -> bool:
        return self.disease_detected is None

    def to_dict(self) -> Dict:
        return {
            "diseaseDetected": self.disease_detected,
            "confidence": self.confidence,
            "severity": self.severity,
            "symptoms": list(self.symptoms),
            "affectedArea": self.affected_area,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Leaf verdict plus the disease verdict, which only exists for accepted leaves.

    ``verdict`` is one of ``"rejected"``, ``"healthy"`` or ``"diseased"``.
    """
    leaf_detection: LeafDetection
    disease_detection: Optional[DiseaseDetection] = None
    leaf_gate_confidence: float = field(default=LEAF_GATE_CONFIDENCE, compare=False, repr=False)

    def __post_init__(self):
        accepted = self.leaf_detection.passes_gate(self.leaf_gate_confidence)
        if accepted and self.disease_detection is None:
            raise ValueError("An accepted leaf must carry a disease verdict")
        if not accepted and self.disease_detection is not None:
            raise ValueError("A rejected leaf cannot carry a disease verdict")

    @property
    def verdict(self) -> str:
        if self.disease_detection is None:
            return "rejected"
        return "healthy" if self.disease_detection.is_healthy else "diseased"

    def to_dict(self) -> Dict:
        return {
            "leafDetection": self.leaf_detection.to_dict(),
            "diseaseDetection": self.disease_detection.to_dict() if self.disease_detection else None,
        }


# --- 3. Leaf detector ---
def detect_leaf(features: PixelFeatures) -> LeafDetection:
    leaf_color_ratio = features.leaf_color_ratio
    low, high = TEXTURE_BRIGHTNESS_RANGE
    has_texture = low < features.avg_brightness < high

    if leaf_color_ratio > 0.25 and has_texture and features.green_ratio > 0.1:
        result = LeafDetection(True, min(0.95, 0.65 + leaf_color_ratio * 0.4), REASON_STRONG_LEAF)
    elif leaf_color_ratio > 0.15 and features.green_ratio > 0.05:
        result = LeafDetection(True, min(0.75, 0.45 + leaf_color_ratio * 0.35), REASON_PARTIAL_LEAF)
    elif features.green_ratio > 0.08:
        result = LeafDetection(False, 0.35, REASON_INSUFFICIENT)
    else:
        result = LeafDetection(False, 0.15, REASON_NOT_LEAF)

    logger.debug("Leaf detection: color_ratio=%.4f texture=%s -> %s", leaf_color_ratio, has_texture, result)
    return result


# --- 4. Disease catalog and scorer ---
@dataclass(frozen=True)
class DiseaseCandidate:
    name: str
    symptoms: Tuple[str, ...]
    # weights keyed by PixelFeatures ratio attribute names
    weights: Tuple[Tuple[str, float], ...]

    def score(self, features: PixelFeatures) -> float:
        return sum(getattr(features, ratio) * weight for ratio, weight in self.weights)


DISEASE_CATALOG: Tuple[DiseaseCandidate, ...] = (
    DiseaseCandidate(
        name="Leaf Blight",
        symptoms=("Brown spots on leaves", "Wilting", "Yellowing"),
        weights=(("brown_ratio", 1.2), ("dark_ratio", 0.8), ("yellow_ratio", 0.3)),
    ),
    DiseaseCandidate(
        name="Rust Disease",
        symptoms=("Orange-red pustules", "Premature leaf drop"),
        weights=(("brown_ratio", 0.9), ("yellow_ratio", 1.1), ("dark_ratio", 0.2)),
    ),
    DiseaseCandidate(
        name="Bacterial Leaf Spot",
        symptoms=("Dark water-soaked spots", "Yellowing"),
        weights=(("dark_ratio", 1.3), ("yellow_ratio", 0.5), ("brown_ratio", 0.3)),
    ),
    DiseaseCandidate(
        name="Powdery Mildew",
        symptoms=("White powdery coating on leaves",),
        weights=(("white_ratio", 1.5), ("green_ratio", 0.2)),
    ),
    DiseaseCandidate(
        name="Late Blight",
        symptoms=("Dark brown spots", "White mold underneath"),
        weights=(("dark_ratio", 1.1), ("brown_ratio", 0.7), ("white_ratio", 0.3)),
    ),
)


def score_candidates(features: PixelFeatures,
                     catalog: Sequence[DiseaseCandidate] = DISEASE_CATALOG) -> List[Tuple[DiseaseCandidate, float]]:
    return [(candidate, candidate.score(features)) for candidate in catalog]


def top_candidate(features: PixelFeatures,
                  catalog: Sequence[DiseaseCandidate] = DISEASE_CATALOG) -> Tuple[DiseaseCandidate, float]:
    """Highest scoring candidate; on equal scores the earlier catalog entry wins."""
    if not catalog:
        raise ValueError("Disease catalog is empty")
    best, best_score = None, -math.inf
    for candidate, score in score_candidates(features, catalog):
        if score > best_score:
            best, best_score = candidate, score
    return best, best_score


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def severity_for(total_affected: float) -> str:
    if total_affected > HIGH_SEVERITY_AREA:
        return "high"
    if total_affected > MEDIUM_SEVERITY_AREA:
        return "medium"
    return "low"


def detect_disease(features: PixelFeatures,
                   catalog: Sequence[DiseaseCandidate] = DISEASE_CATALOG) -> DiseaseDetection:
    candidate, score = top_candidate(features, catalog)
    total_affected = features.total_affected

    if score > DISEASE_SCORE_THRESHOLD and total_affected > AFFECTED_AREA_FLOOR:
        result = DiseaseDetection(
            disease_detected=candidate.name,
            confidence=min(0.93, 0.55 + score * 1.2),
            severity=severity_for(total_affected),
            symptoms=candidate.symptoms,
            affected_area=min(MAX_AFFECTED_AREA, _round_half_up(total_affected * 100)),
        )
    else:
        result = DiseaseDetection.healthy()

    logger.debug("Disease scoring: top=%s score=%.4f affected=%.4f", candidate.name, score, total_affected)
    return result


# --- 5. Composition ---
def analyze_features(features: PixelFeatures, config: Optional[EngineConfig] = None) -> AnalysisResult:
    config = config or EngineConfig()
    leaf = detect_leaf(features)

    if not leaf.passes_gate(config.leaf_gate_confidence):
        result = AnalysisResult(leaf, None, config.leaf_gate_confidence)
    else:
        result = AnalysisResult(leaf, detect_disease(features), config.leaf_gate_confidence)

    logger.info("Analysis verdict=%s leaf_confidence=%.2f", result.verdict, leaf.confidence)
    return result


def analyze_pixels(pixels, config: Optional[EngineConfig] = None) -> AnalysisResult:
    config = config or EngineConfig()
    return analyze_features(extract_features(pixels, max_samples=config.max_samples), config)


def analyze_image(payload, config: Optional[EngineConfig] = None) -> AnalysisResult:
    """Full analysis of raw image bytes or a base64 data URL.

    Raises ``DecodeError`` when the payload is not a readable, non-empty image.
    """
    return analyze_pixels(decode_image(payload), config)
