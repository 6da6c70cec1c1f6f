"""Locates the total, subtotal and tax lines of a receipt."""

import logging
from decimal import Decimal
from typing import List, Optional
from .base import BaseParser, ParseResult, ReceiptContext
from .amount_parser import AmountParser
from ..models import Totals
from ..rules import RuleBook, contains_term

logger = logging.getLogger(__name__)

# Tax bound when neither a total nor any amount is known
DEFAULT_TAX_CEILING = Decimal('1000')


class TotalsParser(BaseParser):
    """Keyword-driven search for the labelled money lines of a receipt."""

    def __init__(self, rules: Optional[RuleBook] = None):
        super().__init__(rules)
        self.amount_parser = AmountParser(self.rules)

    def parse(self, context: ReceiptContext) -> Optional[ParseResult]:
        """
        Extract total, subtotal and tax.

        Args:
            context: Receipt context; all_amounts is used when present

        Returns:
            ParseResult whose value is a Totals instance
        """
        totals = self.locate(context.full_text, context.all_amounts)
        if totals.total is None and totals.subtotal is None and totals.tax is None:
            self._log_result(None)
            return None

        result = ParseResult(value=totals, confidence=0.8 if totals.total is not None else 0.3)
        self._log_result(result)
        return result

    def locate(self, text: str, all_amounts: Optional[List[Decimal]] = None) -> Totals:
        """
        Find the total, subtotal and tax amounts.

        Lines are scanned top to bottom and the first matching line assigns a
        field. A line qualifies for the total only when it does not look like a
        subtotal line, so "Zwischensumme" never counts as "Summe".

        Args:
            text: Full receipt text
            all_amounts: Every amount on the receipt, largest first

        Returns:
            Totals with the fields that were found
        """
        all_amounts = all_amounts or []
        totals = Totals()

        for line in (text or '').lower().split('\n'):
            amount = self.amount_parser.largest_on_line(line)
            if amount is None:
                continue

            if totals.total is None and self._is_total_line(line):
                totals.total = amount
                self.logger.debug(f"Total line: {line.strip()}")

            if totals.subtotal is None and self._has_keyword(line, self.rules.subtotal_keywords):
                totals.subtotal = amount
                self.logger.debug(f"Subtotal line: {line.strip()}")

            if totals.tax is None and self._is_tax_line(line):
                ceiling = totals.total or (all_amounts[0] if all_amounts else DEFAULT_TAX_CEILING)
                if amount < ceiling:
                    totals.tax = amount
                    self.logger.debug(f"Tax line: {line.strip()}")

            if totals.total is not None and totals.subtotal is not None and totals.tax is not None:
                break

        if totals.total is None and all_amounts:
            totals.total = max(all_amounts)
            self.logger.debug(f"No total keyword found, using largest amount {totals.total}")

        if totals.subtotal is not None and totals.total is not None and totals.subtotal > totals.total:
            self.logger.debug("Subtotal exceeds total, swapping")
            totals.total, totals.subtotal = totals.subtotal, totals.total

        return totals

    def _looks_like_subtotal(self, line: str) -> bool:
        return 'sub' in line or self._has_keyword(line, self.rules.subtotal_keywords)

    def _is_total_line(self, line: str) -> bool:
        return not self._looks_like_subtotal(line) and self._has_keyword(line, self.rules.total_keywords)

    def _is_tax_line(self, line: str) -> bool:
        return (self._has_keyword(line, self.rules.tax_keywords)
                and not self._has_keyword(line, self.rules.pre_tax_qualifiers))

    @staticmethod
    def _has_keyword(line: str, keywords: List[str]) -> bool:
        return any(contains_term(line, keyword) for keyword in keywords)
