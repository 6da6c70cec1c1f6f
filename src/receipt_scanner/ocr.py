"""OCR engines: YomiToku (preferred, on-device model) and Tesseract (bundled fallback)."""

import asyncio
import base64
import binascii
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
import pytesseract
from PIL import Image

from .errors import OCREngineUnavailable
from .models import BoundingBox, OCRResult, RegionOCRResult, TextBlock
from .preprocess import decode_image, preprocess_image
from .regions import simulate_regions

logger = logging.getLogger(__name__)

DEFAULT_TESSERACT_LANGUAGES = "eng+deu+ita+spa+fra+nld+pol"
DEFAULT_TESSERACT_CONFIG = r"--oem 3 --psm 6"

ImageInput = Union[str, bytes, bytearray, Path, Any]


def load_image_bytes(image: ImageInput) -> bytes:
    """
    Resolve an image reference to raw encoded bytes.

    Args:
        image: Base64 text (bare or as a data URL), bytes, a binary file
            object or a local file path

    Returns:
        Encoded image bytes

    Raises:
        ValueError: If the reference cannot be resolved
    """
    if isinstance(image, (bytes, bytearray)):
        return bytes(image)

    if isinstance(image, Path):
        if not image.is_file():
            raise ValueError(f"Image file not found: {image}")
        return image.read_bytes()

    if hasattr(image, "read"):
        data = image.read()
        if not isinstance(data, (bytes, bytearray)):
            raise ValueError("Image file objects must be opened in binary mode")
        return bytes(data)

    if isinstance(image, str):
        text = image.strip()
        if text.startswith("data:"):
            _, _, text = text.partition(",")
        elif len(text) < 1024 and Path(text).is_file():
            return Path(text).read_bytes()
        try:
            return base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Image is neither a readable path nor base64 data: {e}") from e

    raise ValueError(f"Unsupported image reference: {type(image).__name__}")


class OCREngine(ABC):
    """Contract every text recognition backend fulfils."""

    name = "engine"
    supports_regions = False

    @abstractmethod
    def load(self) -> None:
        """Prepare the engine. Raises OCREngineUnavailable when it cannot run here."""

    @abstractmethod
    async def recognize(self, image_bytes: bytes, fast: bool = False) -> OCRResult:
        pass

    async def recognize_with_regions(self, image_bytes: bytes) -> RegionOCRResult:
        raise NotImplementedError(f"{self.name} does not report receipt regions")


def _bounds(left: float, top: float, right: float, bottom: float,
            width: int, height: int) -> BoundingBox:
    width = width or 1
    height = height or 1
    return BoundingBox(
        x=left / width,
        y=top / height,
        width=(right - left) / width,
        height=(bottom - top) / height,
    )


class YomiTokuEngine(OCREngine):
    """Wrapper for YomiToku DocumentAnalyzer running fully on device."""

    name = "yomitoku"
    supports_regions = True

    def __init__(self, device: str = "cpu"):
        """
        Initialize engine settings; models are loaded by ``load``.

        Args:
            device: Device to use ('mps', 'cuda', 'cpu')
        """
        self.device = device
        self.analyzer = None
        self._run_lock: Optional[asyncio.Lock] = None
        self._run_lock_loop = None

    def _analyzer_lock(self) -> asyncio.Lock:
        # One analyzer is shared by every scan and run() reads analyzer.img
        loop = asyncio.get_running_loop()
        if self._run_lock is None or self._run_lock_loop is not loop:
            self._run_lock = asyncio.Lock()
            self._run_lock_loop = loop
        return self._run_lock

    def load(self) -> None:
        """Initialize YomiToku DocumentAnalyzer."""
        try:
            from yomitoku import DocumentAnalyzer
        except ImportError as e:
            raise OCREngineUnavailable("yomitoku is not installed") from e

        try:
            # YomiToku will download models on first run
            logger.info(f"Initializing YomiToku with device: {self.device}")
            configs = {
                'device': self.device,
                'det_model_dir': None,  # Use default
                'rec_model_dir': None,  # Use default
            }
            self.analyzer = DocumentAnalyzer(configs=configs)
            logger.info("YomiToku initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize YomiToku: {e}")
            raise OCREngineUnavailable(f"YomiToku initialization failed: {e}") from e

    async def recognize(self, image_bytes: bytes, fast: bool = False) -> OCRResult:
        if self.analyzer is None:
            raise OCREngineUnavailable("YomiToku is not loaded")

        img = await asyncio.to_thread(decode_image, image_bytes)
        height, width = img.shape[:2]

        async with self._analyzer_lock():
            # Workaround for YomiToku bug: set img attribute
            self.analyzer.img = img
            result = await self.analyzer.run(img)

        document_schema = result[0] if isinstance(result, tuple) and result else result
        blocks = self._words_to_blocks(getattr(document_schema, 'words', None) or [], width, height)
        return self._to_result(blocks)

    async def recognize_with_regions(self, image_bytes: bytes) -> RegionOCRResult:
        return simulate_regions(await self.recognize(image_bytes))

    @staticmethod
    def _words_to_blocks(words, width: int, height: int) -> List[TextBlock]:
        blocks = []
        for word in words:
            content = getattr(word, 'content', '') or ''
            if not content.strip():
                continue
            points = getattr(word, 'points', None) or [[0, 0], [0, 0], [0, 0], [0, 0]]
            xs = [p[0] for p in points]
            ys = [p[1] for p in points]
            blocks.append(TextBlock(
                text=content.strip(),
                confidence=float(getattr(word, 'rec_score', 0.8)),
                bounds=_bounds(min(xs), min(ys), max(xs), max(ys), width, height),
            ))
        # Reading order: top to bottom, then left to right
        blocks.sort(key=lambda b: (round(b.bounds.y, 2), b.bounds.x))
        return blocks

    @staticmethod
    def _to_result(blocks: List[TextBlock]) -> OCRResult:
        confidence = sum(b.confidence for b in blocks) / len(blocks) * 100 if blocks else 0.0
        return OCRResult(
            text='\n'.join(b.text for b in blocks),
            confidence=confidence,
            blocks=blocks,
        )


class TesseractEngine(OCREngine):
    """Tesseract through pytesseract; always bundled, reports lines but no regions."""

    name = "tesseract"
    supports_regions = False

    def __init__(self,
                 languages: str = DEFAULT_TESSERACT_LANGUAGES,
                 config: str = DEFAULT_TESSERACT_CONFIG,
                 preprocess: bool = True,
                 tesseract_cmd: Optional[str] = None):
        self.languages = languages
        self.config = config
        self.preprocess = preprocess
        self.tesseract_cmd = tesseract_cmd

    def load(self) -> None:
        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd
        try:
            version = pytesseract.get_tesseract_version()
            installed = set(pytesseract.get_languages(config=''))
        except (pytesseract.TesseractNotFoundError, OSError) as e:
            raise OCREngineUnavailable(f"Tesseract is not available: {e}") from e

        wanted = self.languages.split('+')
        available = [lang for lang in wanted if lang in installed]
        if not available:
            raise OCREngineUnavailable(f"None of the Tesseract languages {self.languages} are installed")
        if len(available) < len(wanted):
            logger.warning(f"Missing Tesseract languages: {sorted(set(wanted) - set(available))}")
            self.languages = '+'.join(available)
        logger.info(f"Tesseract {version} ready with languages {self.languages}")

    async def recognize(self, image_bytes: bytes, fast: bool = False) -> OCRResult:
        return await asyncio.to_thread(self._recognize_sync, image_bytes, fast)

    def _recognize_sync(self, image_bytes: bytes, fast: bool) -> OCRResult:
        # Fast mode skips the enhancement pass
        if self.preprocess and not fast:
            img = preprocess_image(image_bytes)
        else:
            img = decode_image(image_bytes)
        if img.ndim == 3:
            img = img[:, :, ::-1]  # BGR -> RGB for PIL
        height, width = img.shape[:2]

        data = pytesseract.image_to_data(
            Image.fromarray(np.ascontiguousarray(img)),
            lang=self.languages,
            config=self.config,
            output_type=pytesseract.Output.DICT,
        )
        return self._data_to_result(data, width, height)

    @staticmethod
    def _data_to_result(data: Dict[str, List], width: int, height: int) -> OCRResult:
        """Group Tesseract words into line blocks."""
        lines: Dict[Tuple[int, int, int], List[int]] = {}
        for i, word in enumerate(data.get('text', [])):
            if not str(word).strip() or float(data['conf'][i]) < 0:
                continue
            key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            lines.setdefault(key, []).append(i)

        blocks = []
        word_confidences = []
        for indices in lines.values():
            confidences = [float(data['conf'][i]) for i in indices]
            word_confidences.extend(confidences)
            left = min(data['left'][i] for i in indices)
            top = min(data['top'][i] for i in indices)
            right = max(data['left'][i] + data['width'][i] for i in indices)
            bottom = max(data['top'][i] + data['height'][i] for i in indices)
            blocks.append(TextBlock(
                text=' '.join(str(data['text'][i]).strip() for i in indices),
                confidence=sum(confidences) / len(confidences) / 100,
                bounds=_bounds(left, top, right, bottom, width, height),
            ))

        confidence = sum(word_confidences) / len(word_confidences) if word_confidences else 0.0
        return OCRResult(
            text='\n'.join(b.text for b in blocks),
            confidence=confidence,
            blocks=blocks,
        )


class LazyEngine:
    """Loads its engine on first use, at most once even under concurrent scans.

    A failed load is not remembered; the next caller tries again.
    """

    def __init__(self, engine: OCREngine):
        self.engine = engine
        self._loaded = False
        self._init_task: Optional[asyncio.Task] = None

    @property
    def name(self) -> str:
        return self.engine.name

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def get(self) -> OCREngine:
        if self._loaded:
            return self.engine

        if self._init_task is None or self._init_task.cancelled():
            logger.info(f"Loading OCR engine '{self.engine.name}'")
            self._init_task = asyncio.ensure_future(asyncio.to_thread(self.engine.load))
        task = self._init_task

        try:
            # A caller that gives up must not cancel the load other callers share
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled() and self._init_task is task:
                self._init_task = None
            raise
        except Exception:
            if self._init_task is task:
                self._init_task = None
            raise

        self._loaded = True
        return self.engine


def create_engine(name: str, **options) -> OCREngine:
    """Build an engine by name ('yomitoku' or 'tesseract')."""
    if name == 'yomitoku':
        return YomiTokuEngine(device=options.get('device', 'cpu'))
    if name == 'tesseract':
        return TesseractEngine(
            languages=options.get('languages', DEFAULT_TESSERACT_LANGUAGES),
            config=options.get('config', DEFAULT_TESSERACT_CONFIG),
            preprocess=options.get('preprocess', True),
            tesseract_cmd=options.get('tesseract_cmd'),
        )
    raise ValueError(f"Unknown OCR engine: {name}")
