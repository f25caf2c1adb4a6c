"""
Extractor package: strategy-based product extractors for Brazilian receipts.

Each extractor handles one input format (OCR text of a paper receipt, or the
HTML page of an NFCe). Line tokenizing, price/quantity patterns, line
classification and assembly are shared by both.

Usage (via factory)
-------------------
from extractor import ExtractorFactory
factory = ExtractorFactory()
extractor = factory.get_extractor("ocr_text")
products  = extractor.extract(text)
"""

from extractor.factory import ExtractorFactory
from extractor.models import ExtractedProduct

__all__ = ["ExtractorFactory", "ExtractedProduct"]
