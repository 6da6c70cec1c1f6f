"""Category classification using learned merchants, merchant rules and keywords."""

import logging
from typing import Iterable, List, Optional, Tuple
from rapidfuzz import fuzz

from .models import CategoryConfidence, CategoryMatch, LearnedMerchant
from .rules import RuleBook, contains_term, default_rules

logger = logging.getLogger(__name__)

FUZZY_THRESHOLD = 80


class CategoryClassifier:
    """Suggest an expense category for a scanned receipt.

    Sources are consulted in priority order and the first hit wins:
    merchants the user has corrected before, the built-in merchant table,
    then the category keyword lists.
    """

    def __init__(self, rules: Optional[RuleBook] = None, learning_store=None):
        """
        Initialize classifier.

        Args:
            rules: Merchant and keyword tables (defaults to the shipped ones)
            learning_store: Object exposing ``merchants()``; may be None
        """
        self.rules = rules or default_rules()
        self.learning_store = learning_store

    def classify(self, text: str, merchant_name: Optional[str] = None) -> CategoryMatch:
        """
        Classify a receipt into a category.

        Args:
            text: Full OCR text
            merchant_name: Extracted merchant name, if any

        Returns:
            CategoryMatch with category (or None), confidence and source
        """
        text_lower = (text or '').lower()
        merchant_lower = (merchant_name or '').strip().lower()

        learned = self._match_learned(text_lower, merchant_lower)
        if learned:
            logger.info(f"Classified as '{learned.category}' from learned merchant '{learned.name}'")
            return CategoryMatch(learned.category, CategoryConfidence.HIGH, 'learned')

        for rule in self.rules.merchants:
            if any(contains_term(text_lower, p) or contains_term(merchant_lower, p)
                   for p in rule.patterns):
                logger.info(f"Classified as '{rule.category}' from merchant rule '{rule.display_name}'")
                return CategoryMatch(rule.category, CategoryConfidence.HIGH, 'merchant')

        for category, keywords in self.rules.category_keywords:
            if any(contains_term(text_lower, k) for k in keywords):
                logger.info(f"Classified as '{category}' from keywords")
                return CategoryMatch(category, CategoryConfidence.MEDIUM, 'keyword')

        logger.info("No category match found")
        return CategoryMatch(None, CategoryConfidence.LOW)

    def _match_learned(self, text_lower: str, merchant_lower: str) -> Optional[LearnedMerchant]:
        for learned in self._learned_merchants():
            name = learned.name
            if not name:
                continue
            if merchant_lower and (name in merchant_lower or merchant_lower in name):
                return learned
            if name in text_lower:
                return learned
        return None

    def _learned_merchants(self) -> Iterable[LearnedMerchant]:
        if self.learning_store is None:
            return []
        return self.learning_store.merchants()

    def get_category_suggestions(self, text: str, top_n: int = 3) -> List[Tuple[str, float]]:
        """
        Get top N category suggestions for review purposes.

        Unlike ``classify`` this tolerates OCR misspellings: each word of the
        text is fuzzily compared against the category keywords.

        Args:
            text: Full text to analyze
            top_n: Number of suggestions to return

        Returns:
            List of (category, score) tuples sorted by score
        """
        text_lower = (text or '').lower()
        words = text_lower.split()
        category_scores = {}

        for category, keywords in self.rules.category_keywords:
            score = 0.0
            for keyword in keywords:
                if contains_term(text_lower, keyword):
                    score += 5.0
                    continue
                for word in words:
                    similarity = fuzz.ratio(keyword, word)
                    if similarity >= FUZZY_THRESHOLD:
                        score += similarity / 100.0 * 3.0
            if score > 0:
                category_scores[category] = score

        sorted_categories = sorted(category_scores.items(), key=lambda x: x[1], reverse=True)
        return sorted_categories[:top_n]
