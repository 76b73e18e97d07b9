"""Image builders shared by the tests."""

import cv2
import numpy as np


def make_image(width: int, height: int) -> np.ndarray:
    """Create a random BGR image of the given size."""
    return np.random.randint(0, 255, (height, width, 3), dtype=np.uint8)


def encode_jpeg(image: np.ndarray) -> bytes:
    ok, buffer = cv2.imencode(".jpg", image)
    assert ok
    return buffer.tobytes()
