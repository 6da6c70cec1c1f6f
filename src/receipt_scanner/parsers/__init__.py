"""Receipt parsing components - modular, maintainable parsers."""

from .base import BaseParser, ParseResult, ReceiptContext
from .amount_parser import AmountParser, normalize_amount
from .date_parser import DateParser
from .totals_parser import TotalsParser
from .merchant_parser import MerchantParser

__all__ = [
    'BaseParser',
    'ParseResult',
    'ReceiptContext',
    'AmountParser',
    'normalize_amount',
    'DateParser',
    'TotalsParser',
    'MerchantParser',
]
