"""Data types shared by the engines, the extractors and the scanner."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class CategoryConfidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class MerchantRule:
    """A known merchant: lowercase name patterns, its category and canonical name."""
    patterns: Tuple[str, ...]
    category: str
    display_name: str


@dataclass
class LearnedMerchant:
    """A user-confirmed merchant -> category association."""
    name: str
    category: str
    times_used: int = 1
    last_used: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'category': self.category,
            'times_used': self.times_used,
            'last_used': self.last_used.isoformat() if self.last_used else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LearnedMerchant":
        last_used = data.get('last_used')
        return cls(
            name=str(data['name']).strip().lower(),
            category=str(data['category']),
            times_used=max(1, int(data.get('times_used', 1))),
            last_used=datetime.fromisoformat(last_used) if last_used else None,
        )


@dataclass(frozen=True)
class BoundingBox:
    """Block bounds normalized to the image size (0-1)."""
    x: float
    y: float
    width: float
    height: float

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2


@dataclass
class TextBlock:
    text: str
    confidence: float  # 0-1
    bounds: BoundingBox


@dataclass
class OCRResult:
    """Flat output of an OCR engine."""
    text: str
    confidence: float  # 0-100
    blocks: List[TextBlock] = field(default_factory=list)


@dataclass
class RegionResult:
    text: str = ""
    confidence: float = 0.0  # 0-100
    blocks: List[TextBlock] = field(default_factory=list)


@dataclass
class RegionOCRResult:
    """OCR output split into the top / middle / bottom zones of the receipt."""
    text: str
    confidence: float
    top: RegionResult = field(default_factory=RegionResult)
    middle: RegionResult = field(default_factory=RegionResult)
    bottom: RegionResult = field(default_factory=RegionResult)


@dataclass
class Totals:
    total: Optional[Decimal] = None
    subtotal: Optional[Decimal] = None
    tax: Optional[Decimal] = None


@dataclass
class CategoryMatch:
    category: Optional[str]
    confidence: CategoryConfidence
    source: Optional[str] = None  # 'learned', 'merchant', 'keyword'


@dataclass
class ExtractedReceipt:
    """Structured result of a receipt scan."""
    merchant_name: Optional[str]
    merchant_confidence: float
    total: Optional[Decimal]
    subtotal: Optional[Decimal]
    tax: Optional[Decimal]
    date: Optional[date]
    category: Optional[str]
    category_confidence: CategoryConfidence
    raw_text: str
    all_amounts: List[Decimal] = field(default_factory=list)
    all_dates: List[date] = field(default_factory=list)
    overall_confidence: float = 0.0
    used_native_engine: bool = False
    processing_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation (amounts as strings, dates in ISO form)."""
        def money(value: Optional[Decimal]) -> Optional[str]:
            return str(value) if value is not None else None

        return {
            'merchant_name': self.merchant_name,
            'merchant_confidence': round(self.merchant_confidence, 1),
            'total': money(self.total),
            'subtotal': money(self.subtotal),
            'tax': money(self.tax),
            'date': self.date.isoformat() if self.date else None,
            'category': self.category,
            'category_confidence': self.category_confidence.value,
            'raw_text': self.raw_text,
            'all_amounts': [str(a) for a in self.all_amounts],
            'all_dates': [d.isoformat() for d in self.all_dates],
            'overall_confidence': round(self.overall_confidence, 1),
            'used_native_engine': self.used_native_engine,
            'processing_time_ms': round(self.processing_time_ms, 1),
        }
