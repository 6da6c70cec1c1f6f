"""Amount parsing for US and European number formats."""

import re
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, List
from .base import BaseParser, ParseResult, ReceiptContext

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
MAX_AMOUNT = Decimal('100000')

CURRENCY_SYMBOLS = '$€£¥'

# Money-shaped tokens, all requiring a two-digit decimal part
AMOUNT_PATTERNS = [
    # 1,234.56 / 1.234,56 / 1 234,56 / 45,99 / 12.50
    re.compile(r'(?<![\d.,])(\d{1,3}(?:[., \u00a0]\d{3})+[.,]\d{2}|\d+[.,]\d{2})(?!\d|[.,]\d)'),
    # $ 12.50
    re.compile(r'[$€£¥]\s*(\d+[.,]\d{2})(?!\d|[.,]\d)'),
    # 12,50 €
    re.compile(r'(?<![\d.,])(\d+[.,]\d{2})\s*[$€£¥]'),
]


def normalize_amount(token: str) -> Optional[Decimal]:
    """
    Convert a numeric token to a currency value.

    When both '.' and ',' are present the one that occurs last is the decimal
    point. A lone ',' is a decimal point only when exactly two digits follow it.

    Args:
        token: Raw token such as "1.234,56" or "$1,234.56"

    Returns:
        Decimal with two fractional digits, or None when the token is not a
        number or falls outside 0 < amount < 100000
    """
    cleaned = re.sub(r'\s', '', token).strip(CURRENCY_SYMBOLS)
    if not cleaned:
        return None

    if '.' in cleaned and ',' in cleaned:
        if cleaned.rfind(',') > cleaned.rfind('.'):
            # European: 1.234,56
            cleaned = cleaned.replace('.', '').replace(',', '.')
        else:
            # US: 1,234.56
            cleaned = cleaned.replace(',', '')
    elif ',' in cleaned:
        parts = cleaned.split(',')
        if len(parts) == 2 and len(parts[1]) == 2:
            cleaned = cleaned.replace(',', '.')
        else:
            cleaned = cleaned.replace(',', '')
    elif cleaned.count('.') > 1:
        # 1.234.567 or 1.234.56
        head, _, tail = cleaned.rpartition('.')
        if len(tail) == 2:
            cleaned = head.replace('.', '') + '.' + tail
        else:
            cleaned = cleaned.replace('.', '')

    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None

    if not value.is_finite() or not (0 < value < MAX_AMOUNT):
        return None
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class AmountParser(BaseParser):
    """Collects every money-shaped value printed on a receipt."""

    def parse(self, context: ReceiptContext) -> Optional[ParseResult]:
        """
        Extract all amounts from the receipt text.

        Args:
            context: Receipt context with full text

        Returns:
            ParseResult whose value is the descending list of amounts
        """
        amounts = self.extract_all(context.full_text)
        if not amounts:
            self._log_result(None)
            return None

        result = ParseResult(
            value=amounts,
            confidence=1.0,
            metadata={'count': len(amounts)}
        )
        self._log_result(result)
        return result

    def extract_all(self, text: str) -> List[Decimal]:
        """Return unique amounts found in ``text``, largest first."""
        found = set()
        for pattern in AMOUNT_PATTERNS:
            for match in pattern.finditer(text):
                value = normalize_amount(match.group(1))
                if value is None:
                    self.logger.debug(f"Discarded amount token: {match.group(1)}")
                    continue
                found.add(value)
        return sorted(found, reverse=True)

    def largest_on_line(self, line: str) -> Optional[Decimal]:
        """Largest money-shaped amount on a single line, if any."""
        amounts = self.extract_all(line)
        return amounts[0] if amounts else None
