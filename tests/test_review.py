"""Tests for the review queue and confidence tiers."""

from datetime import date
from decimal import Decimal

import pytest
from receipt_scanner.classify import CategoryClassifier
from receipt_scanner.models import CategoryConfidence
from receipt_scanner.review import ConfidenceTier, ReviewQueue, confidence_tier, make_snippet

from conftest import make_receipt


@pytest.mark.parametrize("confidence, tier", [
    (95.0, ConfidenceTier.AUTO_FILL),
    (70.0, ConfidenceTier.AUTO_FILL),
    (69.9, ConfidenceTier.WARN),
    (50.0, ConfidenceTier.WARN),
    (49.9, ConfidenceTier.BLANK),
    (0.0, ConfidenceTier.BLANK),
])
def test_confidence_tier(confidence, tier):
    assert confidence_tier(confidence) is tier


class TestReviewQueue:
    """Test suite for ReviewQueue."""

    def setup_method(self):
        """Set up test fixtures."""
        self.queue = ReviewQueue(classifier=CategoryClassifier())

    def test_confident_scan_not_queued(self):
        assert self.queue.add_from_extraction("a.jpg", make_receipt()) is None
        assert self.queue.items == []

    def test_missing_fields_listed(self):
        receipt = make_receipt(total=None, merchant_name=None)

        item = self.queue.add_from_extraction("receipts/b.jpg", receipt)

        assert item.reason == "missing total; missing merchant"
        assert item.suggested_total is None
        assert item.suggested_date == "2025-03-15"
        assert item.file_path == "receipts/b.jpg"

    def test_low_ocr_confidence(self):
        item = self.queue.add_from_extraction("c.jpg", make_receipt(overall_confidence=41.6))

        assert item.reason == "low OCR confidence (42)"

    def test_unknown_category_gets_fuzzy_suggestion(self):
        receipt = make_receipt(category=None, category_confidence=CategoryConfidence.LOW,
                               raw_text="restaurnt bill for dinner 23.00")

        item = self.queue.add_from_extraction("d.jpg", receipt)

        assert item.reason == "unknown category"
        assert item.suggested_category == "Meals (Business)"
        assert item.category_suggestions[0][0] == "Meals (Business)"

    def test_snippet_is_single_line(self):
        item = self.queue.add_from_extraction("e.jpg", make_receipt(date=None))

        assert "\n" not in item.raw_snippet
        assert item.raw_snippet.startswith("STARBUCKS #4421 123 Main Street")

    def test_summary(self):
        self.queue.add_from_extraction("a.jpg", make_receipt(total=None))
        self.queue.add_from_extraction("b.jpg", make_receipt(total=None, overall_confidence=30.0))
        self.queue.add_from_extraction("c.jpg", make_receipt(overall_confidence=20.0))

        summary = self.queue.get_summary()

        assert summary["total"] == 3
        assert summary["missing_data"] == 2
        assert summary["reason_breakdown"] == {"missing total": 2, "low OCR confidence": 2}

    def test_empty_summary_and_clear(self):
        self.queue.add_from_extraction("a.jpg", make_receipt(total=None))
        self.queue.clear()

        assert self.queue.get_summary() == {"total": 0}

    def test_detect_duplicates(self):
        scans = [
            ("one.jpg", make_receipt()),
            ("two.jpg", make_receipt(merchant_name="STARBUCKS")),
            ("three.jpg", make_receipt(total=Decimal("9.99"))),
            ("four.jpg", make_receipt(date=None)),
        ]

        duplicates = self.queue.detect_duplicates(scans)

        assert [d.file_path for d in duplicates] == ["one.jpg", "two.jpg"]
        assert all(d.reason == "Potential duplicate receipt" for d in duplicates)
        assert duplicates[0].suggested_date == date(2025, 3, 15).isoformat()


def test_make_snippet_truncates():
    snippet = make_snippet("word " * 100)

    assert snippet.endswith("...")
    assert len(snippet) == 203
