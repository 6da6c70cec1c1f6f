"""Review queue and confidence tiers for uncertain scans."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .models import ExtractedReceipt

logger = logging.getLogger(__name__)

AUTO_FILL_THRESHOLD = 70.0
WARN_THRESHOLD = 50.0
SNIPPET_LENGTH = 200


class ConfidenceTier(str, Enum):
    """How a form should treat an OCR value."""
    AUTO_FILL = "auto_fill"  # fill the field
    WARN = "warn"            # fill it but highlight for checking
    BLANK = "blank"          # leave the field empty


def confidence_tier(confidence: float) -> ConfidenceTier:
    """Map a 0-100 OCR confidence to a tier: >= 70 auto-fill, 50-69 warn, below 50 blank."""
    if confidence >= AUTO_FILL_THRESHOLD:
        return ConfidenceTier.AUTO_FILL
    if confidence >= WARN_THRESHOLD:
        return ConfidenceTier.WARN
    return ConfidenceTier.BLANK


@dataclass
class ReviewItem:
    """Represents a scan that needs manual review."""
    file_path: str
    reason: str
    suggested_merchant: Optional[str] = None
    suggested_date: Optional[str] = None
    suggested_total: Optional[str] = None
    suggested_category: Optional[str] = None
    category_suggestions: List[Tuple[str, float]] = field(default_factory=list)
    raw_snippet: str = ""
    confidence_scores: Optional[Dict[str, float]] = None


def make_snippet(raw_text: str) -> str:
    """First characters of the OCR text on one line, cleaned for spreadsheets."""
    flat = ' '.join(raw_text.split())
    snippet = ''.join(char for char in flat[:SNIPPET_LENGTH] if ord(char) >= 32)
    if len(flat) > SNIPPET_LENGTH:
        snippet += "..."
    return snippet


class ReviewQueue:
    """Manages scans that need manual review."""

    def __init__(self, classifier=None):
        """
        Initialize review queue.

        Args:
            classifier: Optional CategoryClassifier used to offer fuzzy
                category suggestions when a scan has no category
        """
        self.items: List[ReviewItem] = []
        self.classifier = classifier

    def review_reasons(self, receipt: ExtractedReceipt) -> List[str]:
        """
        Determine why a scan should be reviewed.

        Args:
            receipt: Scan result

        Returns:
            List of reasons; empty when the scan can be trusted
        """
        reasons = []
        if receipt.total is None:
            reasons.append("missing total")
        if receipt.date is None:
            reasons.append("missing date")
        if receipt.merchant_name is None:
            reasons.append("missing merchant")
        if receipt.category is None:
            reasons.append("unknown category")
        if confidence_tier(receipt.overall_confidence) is ConfidenceTier.BLANK:
            reasons.append(f"low OCR confidence ({receipt.overall_confidence:.0f})")
        return reasons

    def add_from_extraction(self, file_path: str, receipt: ExtractedReceipt) -> Optional[ReviewItem]:
        """
        Add a scan to the queue if it is uncertain.

        Returns:
            The queued item, or None when no review is needed
        """
        reasons = self.review_reasons(receipt)
        if not reasons:
            return None

        suggestions = []
        if receipt.category is None and self.classifier is not None:
            suggestions = self.classifier.get_category_suggestions(receipt.raw_text)

        item = ReviewItem(
            file_path=str(file_path),
            reason="; ".join(reasons),
            suggested_merchant=receipt.merchant_name,
            suggested_date=receipt.date.isoformat() if receipt.date else None,
            suggested_total=str(receipt.total) if receipt.total is not None else None,
            suggested_category=receipt.category or (suggestions[0][0] if suggestions else None),
            category_suggestions=suggestions,
            raw_snippet=make_snippet(receipt.raw_text),
            confidence_scores={
                'ocr': receipt.overall_confidence,
                'merchant': receipt.merchant_confidence,
            },
        )
        self.items.append(item)
        logger.info(f"Sending {Path(file_path).name} to review: {item.reason}")
        return item

    def detect_duplicates(self, scans: List[Tuple[str, ExtractedReceipt]]) -> List[ReviewItem]:
        """
        Flag receipts that look scanned twice: same merchant, same date, same total.

        Args:
            scans: (file_path, receipt) pairs

        Returns:
            Review items for every member of a duplicate group
        """
        groups: Dict[Tuple[Any, ...], List[str]] = {}
        for file_path, receipt in scans:
            if receipt.total is None or receipt.date is None:
                continue
            key = ((receipt.merchant_name or '').lower(), receipt.date, receipt.total)
            groups.setdefault(key, []).append(str(file_path))

        duplicates = []
        for (merchant, when, total), paths in groups.items():
            if len(paths) < 2:
                continue
            for path in paths:
                duplicates.append(ReviewItem(
                    file_path=path,
                    reason="Potential duplicate receipt",
                    suggested_merchant=merchant or None,
                    suggested_date=when.isoformat(),
                    suggested_total=str(total),
                    raw_snippet=f"Same as {len(paths) - 1} other receipt(s): {merchant or '?'} on {when}",
                ))
        return duplicates

    def get_summary(self) -> Dict[str, Any]:
        """Get summary statistics for the review queue."""
        if not self.items:
            return {"total": 0}

        reason_counts: Dict[str, int] = {}
        for item in self.items:
            for reason in item.reason.split(';'):
                reason = reason.strip()
                # Confidence values vary per item
                reason = reason.split(' (')[0]
                reason_counts[reason] = reason_counts.get(reason, 0) + 1

        return {
            "total": len(self.items),
            "missing_data": sum(1 for item in self.items if 'missing' in item.reason),
            "reason_breakdown": reason_counts,
        }

    def clear(self):
        """Clear all items from the review queue."""
        self.items.clear()
        logger.info("Review queue cleared")
