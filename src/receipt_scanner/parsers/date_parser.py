"""Date parsing for numeric and multi-language textual receipt dates."""

import re
import logging
from datetime import date
from typing import Callable, Optional, List, Tuple
from .base import BaseParser, ParseResult, ReceiptContext
from ..rules import RuleBook

logger = logging.getLogger(__name__)

TWO_DIGIT_YEAR_CUTOVER = 50


class DateParser(BaseParser):
    """Specialized parser for extracting transaction dates from receipts."""

    def __init__(self,
                 rules: Optional[RuleBook] = None,
                 min_year: int = 2020,
                 max_year: int = 2030,
                 today: Callable[[], date] = date.today):
        super().__init__(rules)
        self.min_year = min_year
        self.max_year = max_year
        self.today = today

        # (pattern, pattern_type, confidence)
        self.date_patterns = [
            (re.compile(r'(?<!\d)(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)'), 'iso', 0.95),
            (re.compile(r'(?<![\d./-])(\d{1,2})([./-])(\d{1,2})\2(\d{4}|\d{2})(?!\d)'), 'numeric', 0.6),
            (re.compile(r'(?<![^\W\d_])([^\W\d_]{3,})\.?\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})(?!\d)'),
             'month_day_year', 0.9),
            (re.compile(r'(?<!\d)(\d{1,2})\.?\s+([^\W\d_]{3,})\.?,?\s+(\d{4})(?!\d)'),
             'day_month_year', 0.9),
        ]

    def parse(self, context: ReceiptContext) -> Optional[ParseResult]:
        """
        Extract the transaction date from receipt text.

        Args:
            context: Receipt context with full text

        Returns:
            ParseResult with a datetime.date value; metadata carries every
            valid date found in scan order
        """
        candidates = self._scan(context.full_text)
        if not candidates:
            self._log_result(None)
            return None

        all_dates = []
        for found, _, _ in candidates:
            if found not in all_dates:
                all_dates.append(found)

        selected = self.select_date(all_dates)
        pattern_type, confidence = next(
            (ptype, conf) for found, ptype, conf in candidates if found == selected
        )

        result = ParseResult(
            value=selected,
            confidence=confidence,
            metadata={'pattern_type': pattern_type, 'all_dates': all_dates}
        )
        self._log_result(result)
        return result

    def extract_all(self, text: str) -> List[date]:
        """Return every valid date in ``text``, deduplicated, in scan order.

        Impossible calendar dates such as 31/02 are dropped, not rolled over.
        """
        dates = []
        for found, _, _ in self._scan(text):
            if found not in dates:
                dates.append(found)
        return dates

    def select_date(self, dates: List[date], today: Optional[date] = None) -> Optional[date]:
        """
        Pick the transaction date among candidates.

        The most recent date that is not after today wins; when every date
        lies in the future, the first one found is used.
        """
        if not dates:
            return None
        today = today or self.today()
        past = [d for d in dates if d <= today]
        if past:
            return max(past)
        return dates[0]

    def _scan(self, text: str) -> List[Tuple[date, str, float]]:
        """
        Collect (date, pattern_type, confidence) ordered by position in the text.

        Tokens outside the year window are rejected, and so are impossible
        calendar dates such as 31/02 or 31.04: they are dropped, never rolled
        over into the next month.
        """
        hits = []
        for pattern, pattern_type, base_confidence in self.date_patterns:
            for match in pattern.finditer(text):
                parsed = self._parse_date_match(match, pattern_type)
                if parsed is None:
                    continue
                year, month, day, confidence = parsed
                if not self._validate(year, month, day):
                    self.logger.debug(f"Rejected date token: {match.group()}")
                    continue
                try:
                    found = date(year, month, day)
                except ValueError:
                    self.logger.debug(f"Not a calendar date: {match.group()}")
                    continue
                hits.append((match.start(), found, pattern_type, confidence or base_confidence))

        hits.sort(key=lambda hit: hit[0])
        return [(found, ptype, conf) for _, found, ptype, conf in hits]

    def _parse_date_match(self, match, pattern_type: str) -> Optional[Tuple[int, int, int, Optional[float]]]:
        """Turn a regex match into (year, month, day, confidence override)."""
        groups = match.groups()

        if pattern_type == 'iso':
            year, month, day = groups
            return int(year), int(month), int(day), None

        if pattern_type == 'month_day_year':
            month_word, day, year = groups
            month = self._month_number(month_word)
            if month is None:
                return None
            return int(year), month, int(day), None

        if pattern_type == 'day_month_year':
            day, month_word, year = groups
            month = self._month_number(month_word)
            if month is None:
                return None
            return int(year), month, int(day), None

        # Numeric triplet, day-first unless the fields say otherwise
        first, _, second, year = groups
        day, month = int(first), int(second)
        confidence = None
        if day > 12:
            confidence = 0.85
        elif month > 12:
            day, month = month, day
            confidence = 0.85

        year_int = int(year)
        if len(year) == 2:
            year_int += 2000 if year_int < TWO_DIGIT_YEAR_CUTOVER else 1900
        return year_int, month, day, confidence

    def _month_number(self, word: str) -> Optional[int]:
        word = word.lower()
        return self.rules.months.get(word) or self.rules.months.get(word[:3])

    def _validate(self, year: int, month: int, day: int) -> bool:
        """Range checks only; month lengths are not enforced here."""
        return (1 <= month <= 12 and 1 <= day <= 31
                and self.min_year <= year <= self.max_year)
