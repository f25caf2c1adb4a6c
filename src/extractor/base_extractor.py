"""
Base Extractor
==============
Shared entry point for every extraction strategy:

  - tokenize → classify → assemble for flat text (_text_items)
  - a summary log line per call
  - heuristics never raise: a failing strategy logs and yields nothing

Subclasses override ONLY _items() to handle their input format.
"""

from typing import Dict, List, Optional

from loguru import logger

from extractor.assembler import assemble
from extractor.models import ExtractedProduct
from extractor.tokenizer import tokenize


class BaseExtractor:
    """
    Abstract base class.  Subclasses implement _items().

    Call extract(raw) → list of ExtractedProduct.
    """

    mode = "plain"

    def __init__(self, config: Optional[Dict] = None):
        self.config = config or {}
        self.category_table = self.config.get("categories") or None

    # ── Public entry point ────────────────────────────────────────────────────

    def extract(self, raw: str) -> List[ExtractedProduct]:
        if not raw or not raw.strip():
            logger.info(f"[{self.__class__.__name__}] empty input")
            return self._empty()

        items = self._items(raw)

        logger.info(
            f"[{self.__class__.__name__}] chars={len(raw)} "
            f"products={len(items)} "
            f"total={sum(p.price * p.stock for p in items):.2f}"
        )
        return items

    # ── Must be overridden ────────────────────────────────────────────────────

    def _items(self, raw: str) -> List[ExtractedProduct]:
        """Subclasses implement format-specific item extraction."""
        raise NotImplementedError(
            f"{self.__class__.__name__} must implement _items()"
        )

    # ── Shared helpers ────────────────────────────────────────────────────────

    def _text_items(self, raw: str, mode: Optional[str] = None) -> List[ExtractedProduct]:
        """Flat-text heuristic over tokenized lines."""
        return assemble(tokenize(raw, mode or self.mode), self.category_table)

    @staticmethod
    def _empty() -> List[ExtractedProduct]:
        return []
