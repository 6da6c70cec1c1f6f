"""Merchant name extraction from the receipt header."""

import re
import logging
from typing import Optional
from .base import BaseParser, ParseResult, ReceiptContext
from ..rules import RuleBook

logger = logging.getLogger(__name__)

# Latin letters including the accented forms used by European receipts
LETTER_PATTERN = re.compile(r'[A-Za-zÀ-ɏ]')
CLEANUP_PATTERN = re.compile(r"[^\w\s&'.-]")


class MerchantParser(BaseParser):
    """Specialized parser for extracting the merchant name from receipts."""

    def __init__(self,
                 rules: Optional[RuleBook] = None,
                 max_lines: int = 7,
                 min_letter_ratio: float = 0.4):
        super().__init__(rules)
        self.max_lines = max_lines
        self.min_letter_ratio = min_letter_ratio

    def parse(self, context: ReceiptContext) -> Optional[ParseResult]:
        """
        Extract the merchant name from receipt text.

        Args:
            context: Receipt context with full text and, when available,
                the top region text

        Returns:
            ParseResult with merchant name and confidence
        """
        candidate = self._find_candidate(context.top_text or context.full_text)
        if candidate is None:
            self.logger.debug("No merchant name found")
            return None

        rule = self.rules.match_merchant(candidate)
        if rule:
            result = ParseResult(
                value=rule.display_name,
                confidence=0.95,
                source_text=candidate,
                metadata={'type': 'known_merchant', 'category': rule.category}
            )
        else:
            result = ParseResult(
                value=CLEANUP_PATTERN.sub('', candidate).strip(),
                confidence=0.6,
                source_text=candidate,
                metadata={'type': 'header_line'}
            )

        self._log_result(result)
        return result

    def identify(self, text: str, top_text: Optional[str] = None) -> Optional[str]:
        """Return the merchant name for ``text``, preferring the top region."""
        result = self.parse(ReceiptContext(full_text=text or '', top_text=top_text))
        if result is None or not result.value:
            return None
        return result.value

    def _find_candidate(self, text: str) -> Optional[str]:
        """First header line that plausibly names the merchant."""
        lines = [line.strip() for line in text.split('\n') if line.strip()]

        for line in lines[:self.max_lines]:
            if any(p.search(line) for p in self.rules.merchant_skip_patterns):
                continue
            if not 2 <= len(line) <= 50:
                continue
            if len(LETTER_PATTERN.findall(line)) / len(line) < self.min_letter_ratio:
                continue
            return line

        return None
