import io

import numpy as np
from PIL import Image

GREEN_LEAF = (50, 150, 50)
BROWN = (130, 90, 40)
DARK = (30, 30, 30)
WHITE = (255, 255, 255)


def solid(color, size=(64, 64)):
    h, w = size
    return np.tile(np.array(color, dtype=np.uint8), (h, w, 1))


def stacked(parts, width=100):
    """Rows of solid color stacked vertically, parts is [(color, rows), ...]."""
    return np.concatenate([solid(color, (rows, width)) for color, rows in parts], axis=0)


def encode(pixels, fmt="PNG"):
    buf = io.BytesIO()
    Image.fromarray(pixels).save(buf, format=fmt)
    return buf.getvalue()
