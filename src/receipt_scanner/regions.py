"""Split flat OCR output into receipt regions by vertical position."""

import logging
from typing import List

from .models import OCRResult, RegionOCRResult, RegionResult, TextBlock

logger = logging.getLogger(__name__)

# Normalized vertical centers delimiting the header and footer zones
TOP_BOUNDARY = 0.2
BOTTOM_BOUNDARY = 0.7


def _region(blocks: List[TextBlock]) -> RegionResult:
    if not blocks:
        return RegionResult()
    confidence = sum(b.confidence for b in blocks) / len(blocks) * 100
    return RegionResult(
        text='\n'.join(b.text for b in blocks),
        confidence=confidence,
        blocks=list(blocks),
    )


def simulate_regions(ocr_result: OCRResult) -> RegionOCRResult:
    """
    Bucket the blocks of an engine result into top, middle and bottom regions.

    Used when the engine cannot report regions itself. A block whose vertical
    center lies above 0.2 is in the header, below 0.7 in the footer.

    Args:
        ocr_result: Engine output with normalized block bounds

    Returns:
        RegionOCRResult carrying the original text and confidence
    """
    top, middle, bottom = [], [], []
    for block in ocr_result.blocks:
        center_y = block.bounds.center_y
        if center_y < TOP_BOUNDARY:
            top.append(block)
        elif center_y > BOTTOM_BOUNDARY:
            bottom.append(block)
        else:
            middle.append(block)

    logger.debug(f"Simulated regions: top={len(top)} middle={len(middle)} bottom={len(bottom)} blocks")
    return RegionOCRResult(
        text=ocr_result.text,
        confidence=ocr_result.confidence,
        top=_region(top),
        middle=_region(middle),
        bottom=_region(bottom),
    )
