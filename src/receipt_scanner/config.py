"""Scanner settings with YAML overrides."""

import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional

import yaml

from .ocr import DEFAULT_TESSERACT_CONFIG, DEFAULT_TESSERACT_LANGUAGES

logger = logging.getLogger(__name__)

ENGINE_CHOICES = ('auto', 'yomitoku', 'tesseract')


@dataclass
class ScannerConfig:
    """Tunable knobs of the scanning pipeline. Defaults suit typical receipts."""
    merchant_confidence_threshold: float = 60.0
    min_year: int = 2020
    max_year: int = 2030
    learned_capacity: int = 500
    merchant_max_lines: int = 7
    merchant_min_letter_ratio: float = 0.4
    engine: str = 'auto'
    tesseract_languages: str = DEFAULT_TESSERACT_LANGUAGES
    tesseract_config: str = DEFAULT_TESSERACT_CONFIG
    tesseract_cmd: Optional[str] = None
    yomitoku_device: str = 'cpu'
    preprocess: bool = True
    store_path: Optional[Path] = None
    rules_dir: Optional[Path] = None

    def __post_init__(self):
        if self.engine not in ENGINE_CHOICES:
            raise ValueError(f"engine must be one of {ENGINE_CHOICES}, got '{self.engine}'")
        if self.min_year > self.max_year:
            raise ValueError("min_year must not exceed max_year")
        if self.learned_capacity < 1:
            raise ValueError("learned_capacity must be positive")
        if self.store_path is not None:
            self.store_path = Path(self.store_path).expanduser()
        if self.rules_dir is not None:
            self.rules_dir = Path(self.rules_dir).expanduser()

    @classmethod
    def from_yaml(cls, path: Path) -> "ScannerConfig":
        """
        Load settings from a YAML mapping; unknown keys are ignored with a warning.

        Args:
            path: YAML file

        Returns:
            ScannerConfig with the file's values over the defaults
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except Exception as e:
            logger.error(f"Failed to load config from {path}: {e}")
            raise

        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

        return cls(**{k: v for k, v in data.items() if k in known})

    def override(self, **changes) -> "ScannerConfig":
        """Copy with the given non-None values replaced."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
