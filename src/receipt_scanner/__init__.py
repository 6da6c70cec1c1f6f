"""Offline Receipt Scanner - Extract merchant, totals, date and category from receipt photos."""

__version__ = "1.0.0"
__author__ = "Receipt Scanner Team"
__email__ = ""

from .config import ScannerConfig
from .errors import ImageDecodeError, OCREngineUnavailable, OCRFailure, ScanError
from .models import CategoryConfidence, ExtractedReceipt, LearnedMerchant
from .classify import CategoryClassifier
from .learning import JsonFileStore, LearningStore, MemoryStore
from .scanner import ReceiptScanner
from .review import ReviewQueue, ReviewItem
from .export import ExcelExporter

__all__ = [
    'ScannerConfig',
    'ScanError',
    'OCRFailure',
    'OCREngineUnavailable',
    'ImageDecodeError',
    'CategoryConfidence',
    'ExtractedReceipt',
    'LearnedMerchant',
    'CategoryClassifier',
    'LearningStore',
    'JsonFileStore',
    'MemoryStore',
    'ReceiptScanner',
    'ReviewQueue',
    'ReviewItem',
    'ExcelExporter',
]
