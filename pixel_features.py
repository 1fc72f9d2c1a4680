import base64
import binascii
import io
import logging
import math
from dataclasses import dataclass

import numpy as np
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# --- 1. Configuration ---
DEFAULT_MAX_SAMPLES = 100_000


class DecodeError(ValueError):
    """Raised when a payload cannot be turned into a non-empty RGB pixel grid."""


@dataclass(frozen=True)
class PixelFeatures:
    green_ratio: float
    brown_ratio: float
    yellow_ratio: float
    dark_ratio: float
    white_ratio: float
    avg_brightness: float
    total_pixels: int

    @property
    def leaf_color_ratio(self) -> float:
        return self.green_ratio + self.brown_ratio

    @property
    def total_affected(self) -> float:
        return self.brown_ratio + self.yellow_ratio + self.dark_ratio + self.white_ratio


# --- 2. Decoding ---
def _payload_to_bytes(payload) -> bytes:
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    if isinstance(payload, str):
        data = payload.strip()
        if data.startswith('data:'):
            header, sep, data = data.partition(',')
            if not sep or ';base64' not in header:
                raise DecodeError("Data URL is not base64 encoded.")
        # MIME encoders wrap base64 at 76 columns
        data = "".join(data.split())
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"Invalid base64 image data: {e}") from e
    raise DecodeError(f"Unsupported image payload type: {type(payload).__name__}")


def decode_image(payload) -> np.ndarray:
    """Decode raw bytes or a base64 data URL into an H x W x 3 uint8 array.

    The image is fully loaded here so truncated files fail at this stage and
    not halfway through feature extraction.
    """
    raw = _payload_to_bytes(payload)
    if not raw:
        raise DecodeError("Empty image payload.")

    try:
        with Image.open(io.BytesIO(raw)) as img:
            img.load()
            rgb = img.convert("RGB")
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Unable to decode image: {e}") from e

    pixels = np.asarray(rgb, dtype=np.uint8)
    if pixels.size == 0:
        raise DecodeError("Decoded image contains no pixels.")
    logger.debug("Decoded image %sx%s", pixels.shape[1], pixels.shape[0])
    return pixels


# --- 3. Sampling ---
def sample_stride(total: int, max_samples: int = DEFAULT_MAX_SAMPLES) -> int:
    """Stride over the flattened pixel stream so at most ``max_samples`` are read."""
    if max_samples < 1:
        raise ValueError("max_samples must be at least 1")
    return max(1, math.ceil(total / max_samples))


def _sample_pixels(pixels, max_samples: int) -> np.ndarray:
    arr = np.asarray(pixels)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise DecodeError(f"Expected an H x W x 3 or H x W x 4 pixel grid, got shape {arr.shape}")

    stride = sample_stride(arr.shape[0] * arr.shape[1], max_samples)
    # stride before widening; int32 so channel differences and sums cannot wrap around
    return arr.reshape(-1, arr.shape[2])[::stride, :3].astype(np.int32)


# --- 4. Feature extraction ---
def extract_features(pixels, max_samples: int = DEFAULT_MAX_SAMPLES) -> PixelFeatures:
    sampled = _sample_pixels(pixels, max_samples)
    total = int(sampled.shape[0])
    if total == 0:
        raise DecodeError("Image contains no pixels to sample.")

    r, g, b = sampled[:, 0], sampled[:, 1], sampled[:, 2]

    green = (g > r) & (g > b) & (g > 60)
    brown = (r > 80) & (r < 180) & (g > 50) & (g < 140) & (b < 80) & (np.abs(r - g) < 50)
    yellow = (r > 200) & (g > 180) & (b < 100)
    dark = (r < 80) & (g < 80) & (b < 80)
    white = (r > 220) & (g > 220) & (b > 220)
    brightness_sum = float(np.sum((r + g + b) / 3.0))

    features = PixelFeatures(
        green_ratio=int(np.count_nonzero(green)) / total,
        brown_ratio=int(np.count_nonzero(brown)) / total,
        yellow_ratio=int(np.count_nonzero(yellow)) / total,
        dark_ratio=int(np.count_nonzero(dark)) / total,
        white_ratio=int(np.count_nonzero(white)) / total,
        avg_brightness=brightness_sum / total,
        total_pixels=total,
    )
    logger.debug("Extracted features from %d sampled pixels: %s", total, features)
    return features


def extract_features_from_bytes(payload, max_samples: int = DEFAULT_MAX_SAMPLES) -> PixelFeatures:
    return extract_features(decode_image(payload), max_samples=max_samples)
