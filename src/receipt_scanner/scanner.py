"""Receipt scanning pipeline: OCR, field extraction, categorization and gating."""

import logging
import time
from datetime import date
from typing import Callable, Optional, Tuple

from .classify import CategoryClassifier
from .config import ScannerConfig
from .errors import OCRFailure
from .learning import JsonFileStore, LearningStore, MemoryStore
from .models import ExtractedReceipt, RegionOCRResult
from .ocr import ImageInput, LazyEngine, OCREngine, create_engine, load_image_bytes
from .parsers import AmountParser, DateParser, MerchantParser, TotalsParser
from .regions import simulate_regions
from .rules import RuleBook, default_rules

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]

MIN_LEARNED_NAME_LENGTH = 2


class ProgressReporter:
    """Forwards milestones to a caller callback; never lets it break a scan."""

    def __init__(self, callback: Optional[ProgressCallback]):
        self.callback = callback
        self.last_percent = -1

    def __call__(self, percent: int, status: str):
        if self.callback is None or percent <= self.last_percent:
            return
        self.last_percent = percent
        try:
            self.callback(percent, status)
        except Exception as e:
            logger.warning(f"Progress callback failed at {percent}%: {e}")


class ReceiptScanner:
    """Turns a receipt image into an ExtractedReceipt.

    The preferred engine is tried first; if it is missing or fails the
    bundled engine takes over. Regions are simulated from block positions
    when the engine cannot report them.
    """

    def __init__(self,
                 config: Optional[ScannerConfig] = None,
                 preferred_engine: Optional[OCREngine] = None,
                 fallback_engine: Optional[OCREngine] = None,
                 learning_store: Optional[LearningStore] = None,
                 rules: Optional[RuleBook] = None,
                 today: Callable[[], date] = date.today):
        """
        Initialize the scanner.

        Args:
            config: Scanner settings (defaults when omitted)
            preferred_engine: Engine tried first; built from config when omitted
            fallback_engine: Bundled engine; built from config when omitted
            learning_store: Store of learned merchants; built from config.store_path
            rules: Merchant and keyword tables
            today: Clock used to pick the transaction date
        """
        self.config = config or ScannerConfig()
        if rules is None:
            rules = RuleBook.load(self.config.rules_dir) if self.config.rules_dir else default_rules()
        self.rules = rules

        if learning_store is None:
            kv_store = JsonFileStore(self.config.store_path) if self.config.store_path else MemoryStore()
            learning_store = LearningStore(kv_store, capacity=self.config.learned_capacity)
        self.learning_store = learning_store

        preferred, fallback = self._build_engines(preferred_engine, fallback_engine)
        self.preferred = LazyEngine(preferred) if preferred else None
        self.fallback = LazyEngine(fallback) if fallback else None

        self.amount_parser = AmountParser(self.rules)
        self.date_parser = DateParser(self.rules, self.config.min_year, self.config.max_year, today)
        self.totals_parser = TotalsParser(self.rules)
        self.merchant_parser = MerchantParser(self.rules,
                                              self.config.merchant_max_lines,
                                              self.config.merchant_min_letter_ratio)
        self.classifier = CategoryClassifier(self.rules, self.learning_store)

    def _build_engines(self, preferred: Optional[OCREngine],
                       fallback: Optional[OCREngine]) -> Tuple[Optional[OCREngine], Optional[OCREngine]]:
        if preferred is not None or fallback is not None:
            return preferred, fallback

        engine = self.config.engine
        if engine in ('auto', 'yomitoku'):
            preferred = create_engine('yomitoku', device=self.config.yomitoku_device)
        if engine in ('auto', 'tesseract'):
            fallback = create_engine('tesseract',
                                     languages=self.config.tesseract_languages,
                                     config=self.config.tesseract_config,
                                     preprocess=self.config.preprocess,
                                     tesseract_cmd=self.config.tesseract_cmd)
        return preferred, fallback

    async def scan_receipt(self, image: ImageInput,
                           on_progress: Optional[ProgressCallback] = None) -> ExtractedReceipt:
        """
        Scan a receipt image.

        Args:
            image: Base64 text or data URL, bytes, binary file object or path
            on_progress: Optional ``(percent, status)`` callback

        Returns:
            ExtractedReceipt; fields that could not be found are None

        Raises:
            ValueError: If the image reference cannot be resolved
            OCRFailure: If no engine could read the image
        """
        start_time = time.perf_counter()
        report = ProgressReporter(on_progress)

        report(5, 'Preparing image...')
        image_bytes = load_image_bytes(image)

        report(10, 'Loading OCR engine...')
        ocr_result, used_native = await self._run_region_ocr(image_bytes, report)

        report(60, 'Extracting data...')
        receipt = self.extract(ocr_result, used_native_engine=used_native, report=report)
        receipt.processing_time_ms = (time.perf_counter() - start_time) * 1000

        report(100, 'Complete!')
        logger.info(f"Scanned receipt: merchant={receipt.merchant_name!r} total={receipt.total} "
                    f"date={receipt.date} category={receipt.category!r} "
                    f"in {receipt.processing_time_ms:.0f} ms")
        return receipt

    async def _run_region_ocr(self, image_bytes: bytes,
                              report: ProgressReporter) -> Tuple[RegionOCRResult, bool]:
        if self.preferred is not None:
            try:
                result = await self._recognize(self.preferred, image_bytes, report)
                return result, True
            except Exception as e:
                logger.warning(f"OCR engine '{self.preferred.name}' failed, falling back: {e}")

        if self.fallback is None:
            raise OCRFailure("No OCR engine could read the image")

        try:
            result = await self._recognize(self.fallback, image_bytes, report)
        except Exception as e:
            logger.error(f"Fallback OCR engine '{self.fallback.name}' failed: {e}")
            raise OCRFailure(f"OCR failed: {e}") from e
        return result, False

    async def _recognize(self, lazy_engine: LazyEngine, image_bytes: bytes,
                         report: ProgressReporter) -> RegionOCRResult:
        engine = await lazy_engine.get()
        report(30, 'Analyzing receipt...')
        if engine.supports_regions:
            return await engine.recognize_with_regions(image_bytes)
        return simulate_regions(await engine.recognize(image_bytes))

    def extract(self, ocr_result: RegionOCRResult, used_native_engine: bool = False,
                report: Optional[ProgressReporter] = None) -> ExtractedReceipt:
        """Run the field extractors and the classifier over engine output."""
        text = ocr_result.text or ''

        all_amounts = self.amount_parser.extract_all(text)
        totals = self.totals_parser.locate(text, all_amounts)
        all_dates = self.date_parser.extract_all(text)
        transaction_date = self.date_parser.select_date(all_dates)
        merchant_name = self.merchant_parser.identify(text, ocr_result.top.text or None)

        if report:
            report(85, 'Categorizing...')
        match = self.classifier.classify(text, merchant_name)

        merchant_confidence = ocr_result.top.confidence
        if merchant_confidence < self.config.merchant_confidence_threshold:
            if merchant_name:
                logger.info(f"Dropping merchant '{merchant_name}': header confidence "
                            f"{merchant_confidence:.0f} below {self.config.merchant_confidence_threshold:.0f}")
            merchant_name = None

        return ExtractedReceipt(
            merchant_name=merchant_name,
            merchant_confidence=merchant_confidence,
            total=totals.total,
            subtotal=totals.subtotal,
            tax=totals.tax,
            date=transaction_date,
            category=match.category,
            category_confidence=match.confidence,
            raw_text=text,
            all_amounts=all_amounts,
            all_dates=all_dates,
            overall_confidence=ocr_result.confidence,
            used_native_engine=used_native_engine,
        )

    def record_correction(self, original_merchant: Optional[str], corrected_name: str, category: str):
        """
        Learn from a user's correction of a scan.

        The corrected name is remembered, and so is the name the scanner
        originally extracted when it differs, so both map to ``category``.
        """
        corrected = (corrected_name or '').strip()
        if len(corrected) >= MIN_LEARNED_NAME_LENGTH:
            self.learning_store.record(corrected, category)

        original = (original_merchant or '').strip()
        if (len(original) >= MIN_LEARNED_NAME_LENGTH
                and original.lower() != corrected.lower()):
            self.learning_store.record(original, category)

    def clear_learned_merchants(self):
        self.learning_store.clear()
