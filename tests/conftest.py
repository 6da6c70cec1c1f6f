"""Shared test helpers: in-memory OCR engines and receipt builders."""

import time
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from receipt_scanner.errors import OCREngineUnavailable
from receipt_scanner.models import (
    BoundingBox,
    CategoryConfidence,
    ExtractedReceipt,
    OCRResult,
    RegionOCRResult,
    TextBlock,
)
from receipt_scanner.ocr import OCREngine
from receipt_scanner.regions import simulate_regions

# Encoded images are never decoded by the fakes
FAKE_IMAGE = b"\x89PNG fake image bytes"


def make_ocr_result(lines: List[Tuple[str, float, float]]) -> OCRResult:
    """Build engine output from (text, vertical center 0-1, confidence 0-1) triples."""
    blocks = [
        TextBlock(text=text, confidence=conf, bounds=BoundingBox(x=0.1, y=center - 0.01, width=0.8, height=0.02))
        for text, center, conf in lines
    ]
    confidence = sum(b.confidence for b in blocks) / len(blocks) * 100 if blocks else 0.0
    return OCRResult(text='\n'.join(b.text for b in blocks), confidence=confidence, blocks=blocks)


def starbucks_receipt(header_confidence: float = 0.92) -> OCRResult:
    return make_ocr_result([
        ("STARBUCKS #4421", 0.05, header_confidence),
        ("123 Main Street", 0.10, header_confidence),
        ("Latte 4.50", 0.40, 0.90),
        ("Muffin 3.20", 0.45, 0.90),
        ("Date: 03/15/2025", 0.55, 0.88),
        ("Subtotal 7.70", 0.75, 0.91),
        ("Tax 0.62", 0.80, 0.91),
        ("Total 8.32", 0.85, 0.93),
    ])


class FakeEngine(OCREngine):
    """Scripted engine that counts how often it is loaded and used."""

    def __init__(self,
                 name: str = "fake",
                 result: Optional[OCRResult] = None,
                 supports_regions: bool = False,
                 load_error: Optional[Exception] = None,
                 recognize_error: Optional[Exception] = None,
                 load_delay: float = 0.0):
        self.name = name
        self.result = result or starbucks_receipt()
        self.supports_regions = supports_regions
        self.load_error = load_error
        self.recognize_error = recognize_error
        self.load_delay = load_delay
        self.load_calls = 0
        self.recognize_calls = 0
        self.region_calls = 0

    def load(self) -> None:
        self.load_calls += 1
        if self.load_delay:
            time.sleep(self.load_delay)
        if self.load_error is not None:
            raise self.load_error

    async def recognize(self, image_bytes: bytes, fast: bool = False) -> OCRResult:
        self.recognize_calls += 1
        if self.recognize_error is not None:
            raise self.recognize_error
        return self.result

    async def recognize_with_regions(self, image_bytes: bytes) -> RegionOCRResult:
        self.region_calls += 1
        if self.recognize_error is not None:
            raise self.recognize_error
        return simulate_regions(self.result)


def unavailable_engine(name: str = "preferred") -> FakeEngine:
    return FakeEngine(name=name, load_error=OCREngineUnavailable(f"{name} not installed"))


def make_receipt(**overrides) -> ExtractedReceipt:
    """A confidently scanned receipt; override fields to degrade it."""
    values = dict(
        merchant_name="Starbucks",
        merchant_confidence=92.0,
        total=Decimal("8.32"),
        subtotal=Decimal("7.70"),
        tax=Decimal("0.62"),
        date=date(2025, 3, 15),
        category="Meals (Business)",
        category_confidence=CategoryConfidence.HIGH,
        raw_text=starbucks_receipt().text,
        overall_confidence=91.0,
    )
    values.update(overrides)
    return ExtractedReceipt(**values)
