# src/vision/preprocessing.py
"""
Image preprocessing strategies for medicine package photographs.

Each strategy is a pure function from a decoded BGR/grayscale image to a
new image ready for OCR. Strategies are listed in priority order, least
destructive first: the OCR ensemble walks them in this order and stops as
soon as one of them yields a confident read.
"""

import cv2
import numpy as np
from enum import Enum
from typing import Callable, Dict, List, Optional


MIN_OCR_SIDE = 200  # px; smaller crops are upscaled before OCR
GAMMA = 0.6         # < 1 brightens dark, underexposed labels


class PreprocessKind(Enum):
    GRAYSCALE = "grayscale"
    NORMALIZED = "normalized"
    HIGH_CONTRAST = "high_contrast"
    DENOISED = "denoised"
    GAMMA = "gamma"
    INVERTED = "inverted"


# -------------------------------------------------
# Decoding / shared helpers
# -------------------------------------------------

def decode_image(buffer: bytes) -> Optional[np.ndarray]:
    """Decode an encoded image buffer (PNG, JPEG, ...). Returns None if unreadable."""
    if not buffer:
        return None
    data = np.frombuffer(buffer, dtype=np.uint8)
    image = cv2.imdecode(data, cv2.IMREAD_COLOR)
    if image is None or image.size == 0:
        return None
    return image


def upscale_small(image: np.ndarray) -> np.ndarray:
    """Upscale small images (helps with tiny text)."""
    h, w = image.shape[:2]
    if h < MIN_OCR_SIDE or w < MIN_OCR_SIDE:
        scale = max(MIN_OCR_SIDE / h, MIN_OCR_SIDE / w, 2.0)
        image = cv2.resize(image, None, fx=scale, fy=scale, interpolation=cv2.INTER_CUBIC)
    return image


def to_gray(image: np.ndarray) -> np.ndarray:
    if len(image.shape) == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    return image.copy()


def sharpen_image(image: np.ndarray, strength: float = 1.5) -> np.ndarray:
    """Apply unsharp masking to sharpen blurry images."""
    blurred = cv2.GaussianBlur(image, (0, 0), 3)
    sharpened = cv2.addWeighted(image, 1 + strength, blurred, -strength, 0)
    return np.clip(sharpened, 0, 255).astype(np.uint8)


def remove_glare(image: np.ndarray) -> np.ndarray:
    """
    Reduce specular highlights (glare) from foil and plastic blister packs.
    Uses inpainting on overexposed regions.
    """
    if len(image.shape) == 3:
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    else:
        gray = image
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)

    _, mask = cv2.threshold(gray, 240, 255, cv2.THRESH_BINARY)
    kernel = np.ones((5, 5), np.uint8)
    mask = cv2.dilate(mask, kernel, iterations=1)

    return cv2.inpaint(image, mask, inpaintRadius=3, flags=cv2.INPAINT_TELEA)


# -------------------------------------------------
# Strategies
# -------------------------------------------------

def grayscale(image: np.ndarray) -> np.ndarray:
    """Minimal transform: grayscale only."""
    return to_gray(image)


def normalized(image: np.ndarray) -> np.ndarray:
    """Grayscale with the intensity range stretched to 0-255."""
    gray = to_gray(image)
    return cv2.normalize(gray, None, alpha=0, beta=255, norm_type=cv2.NORM_MINMAX)


def high_contrast(image: np.ndarray) -> np.ndarray:
    """Deglare, CLAHE, then Otsu binarization."""
    gray = to_gray(remove_glare(image))
    clahe = cv2.createCLAHE(clipLimit=3.0, tileGridSize=(8, 8))
    enhanced = clahe.apply(gray)
    _, binary = cv2.threshold(enhanced, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    return binary


def denoised(image: np.ndarray) -> np.ndarray:
    """Non-local means denoising, contrast boost and sharpening for blurry shots."""
    gray = to_gray(image)
    clean = cv2.fastNlMeansDenoising(gray, h=15, templateWindowSize=7, searchWindowSize=21)
    clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
    return sharpen_image(clahe.apply(clean), strength=2.0)


def gamma_corrected(image: np.ndarray, gamma: float = GAMMA) -> np.ndarray:
    gray = to_gray(image)
    table = np.array([((i / 255.0) ** gamma) * 255 for i in range(256)]).astype(np.uint8)
    return cv2.LUT(gray, table)


def inverted(image: np.ndarray) -> np.ndarray:
    """Light text on dark backgrounds."""
    return cv2.bitwise_not(normalized(image))


STRATEGIES: Dict[PreprocessKind, Callable[[np.ndarray], np.ndarray]] = {
    PreprocessKind.GRAYSCALE: grayscale,
    PreprocessKind.NORMALIZED: normalized,
    PreprocessKind.HIGH_CONTRAST: high_contrast,
    PreprocessKind.DENOISED: denoised,
    PreprocessKind.GAMMA: gamma_corrected,
    PreprocessKind.INVERTED: inverted,
}

DEFAULT_ORDER: List[PreprocessKind] = list(PreprocessKind)
