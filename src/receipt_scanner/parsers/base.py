"""Base classes for receipt parsers."""

from abc import ABC, abstractmethod
from typing import Optional, Any, Dict, List
from dataclasses import dataclass
from decimal import Decimal
import logging

from ..rules import RuleBook, default_rules

logger = logging.getLogger(__name__)


@dataclass
class ParseResult:
    """Result of a parsing operation with confidence and metadata."""
    value: Any
    confidence: float
    source_text: str = ""
    metadata: Dict[str, Any] = None

    def __post_init__(self):
        if self.metadata is None:
            self.metadata = {}


@dataclass
class ReceiptContext:
    """Context information about a receipt for parsing."""
    full_text: str
    lines: List[str] = None
    top_text: Optional[str] = None
    all_amounts: List[Decimal] = None

    def __post_init__(self):
        if self.lines is None:
            self.lines = self.full_text.split('\n') if self.full_text else []
        if self.all_amounts is None:
            self.all_amounts = []


class BaseParser(ABC):
    """Base class for all receipt parsers."""

    def __init__(self, rules: Optional[RuleBook] = None):
        self.rules = rules or default_rules()
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def parse(self, context: ReceiptContext) -> Optional[ParseResult]:
        """
        Parse the specific field from receipt context.

        Args:
            context: Receipt context with text and region hints

        Returns:
            ParseResult with value and confidence, or None if parsing failed
        """
        pass

    def _log_result(self, result: Optional[ParseResult]):
        """Log parsing result for debugging."""
        if result:
            self.logger.debug(f"Parsed: {result.value} (confidence: {result.confidence:.2f})")
        else:
            self.logger.debug("Parsing found no match")
