"""Image cleanup applied before text recognition."""

import logging
from typing import Union

import cv2
import numpy as np

from .errors import ImageDecodeError

logger = logging.getLogger(__name__)

# Tesseract reads best when the receipt is neither tiny nor huge
MAX_DIM = 1500
MIN_DIM = 800

CONTRAST = 1.5
BRIGHTNESS = 10
THRESHOLD_MARGIN = 30
SHARPEN_AMOUNT = 0.3

LAPLACIAN_KERNEL = np.array([[0, -1, 0],
                             [-1, 4, -1],
                             [0, -1, 0]], dtype=np.float32)


def decode_image(image_bytes: bytes) -> np.ndarray:
    """Decode encoded image bytes into a BGR array."""
    img = cv2.imdecode(np.frombuffer(image_bytes, dtype=np.uint8), cv2.IMREAD_COLOR)
    if img is None:
        raise ImageDecodeError("Unsupported or corrupt image data")
    return img


def resize_for_ocr(img: np.ndarray) -> np.ndarray:
    """Scale so the longest side is at most 1500 px and, if possible, the shortest at least 800 px."""
    height, width = img.shape[:2]
    max_side, min_side = max(width, height), min(width, height)

    if max_side > MAX_DIM:
        scale = MAX_DIM / max_side
    elif min_side < MIN_DIM:
        scale = min(MIN_DIM / min_side, MAX_DIM / max_side)
    else:
        return img

    new_size = (max(1, round(width * scale)), max(1, round(height * scale)))
    interpolation = cv2.INTER_AREA if scale < 1 else cv2.INTER_CUBIC
    logger.debug(f"Resizing image from {width}x{height} to {new_size[0]}x{new_size[1]}")
    return cv2.resize(img, new_size, interpolation=interpolation)


def preprocess_image(image: Union[bytes, np.ndarray]) -> np.ndarray:
    """
    Enhance a receipt photo for OCR.

    Args:
        image: Encoded image bytes or a decoded BGR/grayscale array

    Returns:
        Single-channel uint8 array: contrast-stretched, pushed towards black
        and white around the Otsu threshold, then lightly sharpened
    """
    img = decode_image(image) if isinstance(image, (bytes, bytearray)) else image
    img = resize_for_ocr(img)

    gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY) if img.ndim == 3 else img
    threshold, _ = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)

    enhanced = (gray.astype(np.float32) - 128) * CONTRAST + 128 + BRIGHTNESS
    enhanced = np.clip(enhanced, 0, 255)
    enhanced[enhanced < threshold - THRESHOLD_MARGIN] = 0
    enhanced[enhanced > threshold + THRESHOLD_MARGIN] = 255

    laplacian = cv2.filter2D(enhanced, -1, LAPLACIAN_KERNEL)
    sharpened = np.clip(enhanced + SHARPEN_AMOUNT * laplacian, 0, 255).astype(np.uint8)

    logger.debug(f"Preprocessed image {sharpened.shape[1]}x{sharpened.shape[0]}, Otsu threshold {threshold:.0f}")
    return sharpened
