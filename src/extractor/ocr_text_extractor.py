"""
OCR Text Extractor
==================
Photographed paper receipts: raw OCR text, one receipt row per line.

When nothing at all is recognised the extractor can emit one placeholder
product so the review screen always has a row to correct
(extraction.placeholder_on_empty).
"""

from decimal import Decimal
from typing import List

from loguru import logger

from extractor.base_extractor import BaseExtractor
from extractor.models import DEFAULT_CATEGORY, ExtractedProduct


PLACEHOLDER_NAME        = "Produto Extraído 1"
PLACEHOLDER_DESCRIPTION = "Descrição do produto extraído da nota"
PLACEHOLDER_PRICE       = Decimal("10.50")


def placeholder_product() -> ExtractedProduct:
    return ExtractedProduct(
        name=PLACEHOLDER_NAME,
        description=PLACEHOLDER_DESCRIPTION,
        price=PLACEHOLDER_PRICE,
        stock=1,
        category=DEFAULT_CATEGORY,
    )


class OcrTextExtractor(BaseExtractor):
    """Flat-text heuristic over OCR lines."""

    mode = "plain"

    @property
    def placeholder_on_empty(self) -> bool:
        return bool(self.config.get("placeholder_on_empty", True))

    def extract(self, raw: str) -> List[ExtractedProduct]:
        items = super().extract(raw)
        if not items and self.placeholder_on_empty:
            logger.warning("[OcrTextExtractor] no products recognised — emitting placeholder")
            return [placeholder_product()]
        return items

    def _items(self, raw: str) -> List[ExtractedProduct]:
        return self._text_items(raw)
