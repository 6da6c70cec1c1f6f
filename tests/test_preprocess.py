"""Tests for image preprocessing and engine output conversion."""

import asyncio
from types import SimpleNamespace

import cv2
import numpy as np
import pytest
from receipt_scanner.errors import ImageDecodeError, OCREngineUnavailable
from receipt_scanner.ocr import TesseractEngine, YomiTokuEngine, create_engine, load_image_bytes
from receipt_scanner.preprocess import decode_image, preprocess_image, resize_for_ocr


def synthetic_receipt(width=400, height=600):
    """Light gray paper with dark text-like bars."""
    img = np.full((height, width, 3), 200, dtype=np.uint8)
    for top in range(50, height - 50, 40):
        cv2.rectangle(img, (40, top), (width - 40, top + 12), (40, 40, 40), -1)
    return img


def png_bytes(img):
    ok, buffer = cv2.imencode('.png', img)
    assert ok
    return buffer.tobytes()


class TestPreprocess:
    """Test suite for the OpenCV enhancement pass."""

    def test_decode_round_trip(self):
        img = synthetic_receipt()

        decoded = decode_image(png_bytes(img))

        assert decoded.shape == img.shape

    def test_corrupt_bytes_rejected(self):
        with pytest.raises(ImageDecodeError):
            decode_image(b"definitely not an image")

    def test_small_image_upscaled(self):
        resized = resize_for_ocr(synthetic_receipt(400, 600))

        assert min(resized.shape[:2]) == 800

    def test_large_image_downscaled(self):
        resized = resize_for_ocr(synthetic_receipt(1000, 3000))

        assert max(resized.shape[:2]) == 1500

    def test_image_in_range_untouched(self):
        img = synthetic_receipt(900, 1200)

        assert resize_for_ocr(img) is img

    def test_preprocess_pushes_to_black_and_white(self):
        result = preprocess_image(png_bytes(synthetic_receipt()))

        assert result.dtype == np.uint8
        assert result.ndim == 2
        # Paper becomes white, bars become black
        assert result.max() == 255
        assert result.min() == 0
        assert np.median(result) == 255


class TestTesseractOutput:
    """Test suite for grouping Tesseract words into lines."""

    def test_words_grouped_by_line(self):
        data = {
            'text': ['TOTAL', '12.50', '', 'Thanks'],
            'conf': [90, 80, -1, 70],
            'block_num': [1, 1, 1, 2],
            'par_num': [1, 1, 1, 1],
            'line_num': [1, 1, 1, 1],
            'left': [10, 60, 0, 10],
            'top': [100, 100, 0, 150],
            'width': [40, 30, 0, 50],
            'height': [10, 10, 0, 10],
        }

        result = TesseractEngine._data_to_result(data, width=200, height=200)

        assert result.text == "TOTAL 12.50\nThanks"
        assert result.confidence == pytest.approx(80.0)
        assert result.blocks[0].confidence == pytest.approx(0.85)
        assert result.blocks[0].bounds.center_y == pytest.approx(0.525)

    def test_unknown_engine(self):
        with pytest.raises(ValueError):
            create_engine("cloud")


class SharedAnalyzer:
    """Stands in for DocumentAnalyzer, which reads ``self.img`` inside run()."""

    def __init__(self):
        self.img = None
        self.active = 0
        self.max_active = 0
        self.mismatches = 0

    async def run(self, img):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        await asyncio.sleep(0.01)
        if self.img is not img:
            self.mismatches += 1
        self.active -= 1
        word = SimpleNamespace(content=f"TOTAL {img.shape[1]}.00", rec_score=0.9,
                               points=[[10, 10], [90, 10], [90, 30], [10, 30]])
        return SimpleNamespace(words=[word]), None, None


class TestYomiTokuEngine:
    """Test suite for the YomiToku wrapper with a scripted analyzer."""

    def setup_method(self):
        """Set up test fixtures."""
        self.engine = YomiTokuEngine()
        self.engine.analyzer = SharedAnalyzer()

    def test_words_converted_to_blocks(self):
        result = asyncio.run(self.engine.recognize(png_bytes(synthetic_receipt(400, 600))))

        assert result.text == "TOTAL 400.00"
        assert result.confidence == pytest.approx(90.0)
        assert result.blocks[0].bounds.x == pytest.approx(0.025)

    def test_concurrent_scans_do_not_share_analyzer_image(self):
        async def run():
            return await asyncio.gather(
                self.engine.recognize(png_bytes(synthetic_receipt(400, 600))),
                self.engine.recognize(png_bytes(synthetic_receipt(500, 600))),
            )

        first, second = asyncio.run(run())

        assert first.text == "TOTAL 400.00"
        assert second.text == "TOTAL 500.00"
        assert self.engine.analyzer.max_active == 1
        assert self.engine.analyzer.mismatches == 0

    def test_not_loaded(self):
        engine = YomiTokuEngine()

        with pytest.raises(OCREngineUnavailable):
            asyncio.run(engine.recognize(png_bytes(synthetic_receipt())))


class TestLoadImageBytes:
    """Test suite for image reference resolution."""

    def test_file_object(self, tmp_path):
        path = tmp_path / "r.png"
        path.write_bytes(b"abc")

        with open(path, 'rb') as f:
            assert load_image_bytes(f) == b"abc"

    def test_string_path(self, tmp_path):
        path = tmp_path / "r.png"
        path.write_bytes(b"abc")

        assert load_image_bytes(str(path)) == b"abc"

    def test_missing_path(self, tmp_path):
        with pytest.raises(ValueError):
            load_image_bytes(tmp_path / "missing.png")

    def test_unsupported_type(self):
        with pytest.raises(ValueError):
            load_image_bytes(12345)
