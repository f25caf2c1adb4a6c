"""
Extractor Factory
=================
Routes to the correct extractor strategy based on the input format.

Usage
-----
    factory   = ExtractorFactory(config)
    extractor = factory.get_extractor("nfce_html")
    products  = extractor.extract(html)
"""

from typing import Dict, Optional

from loguru import logger

from extractor.base_extractor import BaseExtractor
from extractor.nfce_html_extractor import NfceHtmlExtractor
from extractor.ocr_text_extractor import OcrTextExtractor


class ExtractorFactory:
    """
    Returns the appropriate extractor for a given input format.

    Unknown formats fall back to OcrTextExtractor (plain-text heuristic).
    """

    # ── Mapping: source format → extractor class ──────────────────────────────
    _CLASSES = {
        "ocr_text":  OcrTextExtractor,
        "nfce_html": NfceHtmlExtractor,
    }

    def __init__(self, config: Optional[Dict] = None):
        self.config = config or {}
        self._extractors: Dict[str, BaseExtractor] = {}   # lazy per-type instances

    def get_extractor(self, source_format: str) -> BaseExtractor:
        """
        Return a (cached) extractor instance for the given format.

        Parameters
        ----------
        source_format : str
            One of: 'ocr_text', 'nfce_html'
        """
        if source_format not in self._CLASSES:
            logger.warning(
                f"[ExtractorFactory] Unknown source format '{source_format}', "
                f"falling back to OcrTextExtractor"
            )
            source_format = "ocr_text"

        if source_format not in self._extractors:
            cls = self._CLASSES[source_format]
            self._extractors[source_format] = cls(self.config)
            logger.debug(f"[ExtractorFactory] Initialised {cls.__name__}")

        return self._extractors[source_format]

    @property
    def supported_formats(self) -> list:
        """List of all supported source format strings."""
        return list(self._CLASSES.keys())
