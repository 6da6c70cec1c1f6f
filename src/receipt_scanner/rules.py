"""Loading of the static merchant and keyword tables."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Pattern, Tuple

import yaml

from .models import MerchantRule

logger = logging.getLogger(__name__)

RULES_DIR = Path(__file__).parent / "rules"
MERCHANTS_FILE = "merchants.yml"
KEYWORDS_FILE = "keywords.yml"


def contains_term(text: str, term: str) -> bool:
    """Check whether ``term`` occurs anywhere in ``text``.

    Plain substring test on lowercase input, so ``"restaurant"`` matches
    ``"mario's restaurants"`` and ``"walmart"`` matches ``"walmart0421"``.
    Terms that would hit inside unrelated words are kept out of the tables
    instead.
    """
    return bool(term) and term in text


@dataclass
class RuleBook:
    """Read-only bundle of every locale table the extractors consult."""
    merchants: List[MerchantRule]
    total_keywords: List[str]
    subtotal_keywords: List[str]
    tax_keywords: List[str]
    pre_tax_qualifiers: List[str]
    category_keywords: List[Tuple[str, List[str]]]
    months: Dict[str, int]
    merchant_skip_patterns: List[Pattern] = field(default_factory=list)

    def match_merchant(self, text: str) -> Optional[MerchantRule]:
        """Return the first rule (in table order) with a pattern present in ``text``."""
        text_lower = text.lower()
        for rule in self.merchants:
            for pattern in rule.patterns:
                if contains_term(text_lower, pattern):
                    return rule
        return None

    @classmethod
    def load(cls, rules_dir: Optional[Path] = None) -> "RuleBook":
        """
        Load the merchant and keyword tables from YAML files.

        Args:
            rules_dir: Directory holding merchants.yml and keywords.yml.
                Defaults to the tables shipped with the package.

        Returns:
            Populated RuleBook
        """
        rules_dir = Path(rules_dir) if rules_dir else RULES_DIR
        try:
            with open(rules_dir / MERCHANTS_FILE, "r", encoding="utf-8") as f:
                merchant_data = yaml.safe_load(f) or []
            with open(rules_dir / KEYWORDS_FILE, "r", encoding="utf-8") as f:
                keyword_data = yaml.safe_load(f) or {}
        except Exception as e:
            logger.error(f"Failed to load rule tables from {rules_dir}: {e}")
            raise

        merchants = [
            MerchantRule(
                patterns=tuple(str(p).lower() for p in entry["patterns"]),
                category=entry["category"],
                display_name=str(entry["display_name"]),
            )
            for entry in merchant_data
        ]

        totals = keyword_data.get("totals", {})
        categories = [
            (entry["category"], [str(k).lower() for k in entry.get("keywords", [])])
            for entry in keyword_data.get("categories", [])
        ]
        skip_patterns = [
            re.compile(p, re.IGNORECASE)
            for p in keyword_data.get("merchant", {}).get("skip_patterns", [])
        ]

        book = cls(
            merchants=merchants,
            total_keywords=[str(k).lower() for k in totals.get("total", [])],
            subtotal_keywords=[str(k).lower() for k in totals.get("subtotal", [])],
            tax_keywords=[str(k).lower() for k in totals.get("tax", [])],
            pre_tax_qualifiers=[str(k).lower() for k in totals.get("pre_tax", [])],
            category_keywords=categories,
            months={str(k).lower(): int(v) for k, v in keyword_data.get("months", {}).items()},
            merchant_skip_patterns=skip_patterns,
        )
        logger.info(f"Loaded {len(book.merchants)} merchant rules and "
                    f"{len(book.category_keywords)} keyword categories")
        return book


_default_book: Optional[RuleBook] = None


def default_rules() -> RuleBook:
    """Return the shipped tables, loading them on first use."""
    global _default_book
    if _default_book is None:
        _default_book = RuleBook.load()
    return _default_book
