"""Exceptions raised by the scanning pipeline."""


class ScanError(Exception):
    """Base class for receipt scanning failures."""


class OCREngineUnavailable(ScanError):
    """An OCR engine cannot be loaded on this machine."""


class OCRFailure(ScanError):
    """No OCR engine could read the image."""


class ImageDecodeError(ScanError):
    """The image bytes could not be decoded."""
