import cv2
import numpy as np
import pytest

from src.vision.preprocessing import (
    DEFAULT_ORDER,
    STRATEGIES,
    PreprocessKind,
    decode_image,
    gamma_corrected,
    inverted,
    normalized,
    upscale_small,
)


def test_priority_order_least_destructive_first():
    assert DEFAULT_ORDER[0] is PreprocessKind.GRAYSCALE
    assert DEFAULT_ORDER[-1] is PreprocessKind.INVERTED
    assert set(STRATEGIES) == set(PreprocessKind)


@pytest.mark.parametrize("kind", list(PreprocessKind))
def test_strategy_outputs_single_channel_uint8(kind, label_image):
    out = STRATEGIES[kind](label_image)
    assert out.dtype == np.uint8
    assert out.ndim == 2
    assert out.shape == label_image.shape[:2]


@pytest.mark.parametrize("kind", list(PreprocessKind))
def test_strategy_is_pure(kind, label_image):
    before = label_image.copy()
    STRATEGIES[kind](label_image)
    assert np.array_equal(before, label_image)


def test_strategies_accept_grayscale_input(label_image):
    gray = cv2.cvtColor(label_image, cv2.COLOR_BGR2GRAY)
    for kind in PreprocessKind:
        assert STRATEGIES[kind](gray).ndim == 2


def test_inverted_flips_background(label_image):
    out = inverted(label_image)
    assert out[0, 0] == 0


def test_normalized_stretches_range():
    img = np.full((50, 50), 100, dtype=np.uint8)
    img[10:20, 10:20] = 150
    out = normalized(img)
    assert out.min() == 0 and out.max() == 255


def test_gamma_brightens_dark_pixels():
    img = np.full((10, 10), 64, dtype=np.uint8)
    assert gamma_corrected(img).mean() > 64


def test_upscale_small():
    small = np.zeros((40, 80, 3), dtype=np.uint8)
    assert upscale_small(small).shape[0] >= 200
    big = np.zeros((400, 400, 3), dtype=np.uint8)
    assert upscale_small(big) is big


class TestDecodeImage:
    def test_png(self, png_bytes, label_image):
        img = decode_image(png_bytes)
        assert img.shape == label_image.shape

    @pytest.mark.parametrize("data", [b"", b"not an image", b"\x89PNG\r\n\x1a\n"])
    def test_unreadable(self, data):
        assert decode_image(data) is None
