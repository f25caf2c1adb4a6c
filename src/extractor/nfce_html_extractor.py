"""
NFCe HTML Extractor
===================
Documents served by the state tax authorities (SEFAZ) for an NFCe QR code.

Markup differs wildly between states, so the structural pass casts a wide
net of row selectors and keeps only rows that look like an item:

  - at least 3 td/th cells
  - an "R$" price > 0 somewhere in the row text
  - a name of more than 2 chars once price, quantity and digits are removed

Passes
------
  A  : structural — DOM rows via CSS selectors (extract_from_document)
  B  : flat text  — tag-stripped lines through the assembler (extract_from_text)

Some authorities answer with an abbreviated "synthetic" page without items.
Fetching the full DANFE for those is the consultant's job (nfce_client);
this module only detects the page and parses whatever body it is handed.
"""

from typing import List, Optional

from bs4 import BeautifulSoup, Tag
from loguru import logger

from extractor.base_extractor import BaseExtractor
from extractor.line_classifier import MIN_NAME_LENGTH, is_noise
from extractor.models import DEFAULT_CATEGORY, ExtractedProduct
from extractor.patterns import extract_price, extract_quantity, strip_amounts


ROW_SELECTORS = (
    "table tr, .produto, .item-produto, [class*='produto'], [class*='item'], "
    "[id*='produto'], [id*='item'], .linhaProduto, tr[class*='Item']"
)

SYNTHETIC_MARKERS = ("Sintetico", "sintético", "Sintético")

MIN_ROW_CELLS = 3


def is_synthetic(html: str) -> bool:
    """True for the abbreviated confirmation page that lists no items."""
    return any(marker in (html or "") for marker in SYNTHETIC_MARKERS)


class NfceHtmlExtractor(BaseExtractor):
    """Structural table pass with a flat-text fallback."""

    mode = "html"

    def _items(self, raw: str) -> List[ExtractedProduct]:
        if is_synthetic(raw):
            logger.info("[NfceHtmlExtractor] synthetic page — using flat-text pass")
            return self.extract_from_text(raw)
        return self.extract_structured_or_text(raw)

    def extract_structured_or_text(self, raw: str) -> List[ExtractedProduct]:
        """Pass A, then pass B when A finds nothing. Never raises."""
        try:
            structural = self.extract_from_document(raw)
        except Exception as e:
            logger.warning(f"[NfceHtmlExtractor] structural pass failed: {e} — using flat text")
            structural = None

        if structural:
            return structural

        logger.debug("[NfceHtmlExtractor] no structural rows — using flat-text pass")
        return self.extract_from_text(raw)

    # ── Pass A: structural ────────────────────────────────────────────────────

    def extract_from_document(self, html: str) -> Optional[List[ExtractedProduct]]:
        """
        Parse product rows out of the DOM.

        Returns None when the document has no candidate rows at all, so the
        caller falls through to the flat-text pass. An empty list means rows
        existed but none qualified.
        """
        soup = BeautifulSoup(html or "", "html.parser")
        candidates = soup.select(ROW_SELECTORS)
        if not candidates:
            return None

        rows = self._innermost(candidates)
        products: List[ExtractedProduct] = []

        for row in rows:
            product = self._row_to_product(row)
            if product is not None:
                products.append(product)

        logger.debug(
            f"[NfceHtmlExtractor] candidates={len(candidates)} rows={len(rows)} "
            f"products={len(products)}"
        )
        return products

    @staticmethod
    def _innermost(candidates: List[Tag]) -> List[Tag]:
        """
        Drop containers (e.g. a table.itens) that wrap other candidate rows.

        Only descendants wide enough to be a row count, so item-* classed
        cells never displace the <tr> holding them.
        """
        ids = {id(el) for el in candidates}
        rows = []
        for el in candidates:
            if any(
                id(d) in ids and len(d.select("td, th")) >= MIN_ROW_CELLS
                for d in el.find_all(True)
            ):
                continue
            rows.append(el)
        return rows

    def _row_to_product(self, row: Tag) -> Optional[ExtractedProduct]:
        cells = row.select("td, th")
        if len(cells) < MIN_ROW_CELLS:
            return None

        text = " ".join(row.get_text(" ").split())
        price = extract_price(text)
        if is_noise(text, price):
            return None
        if price is None or price <= 0:
            return None

        name = strip_amounts(text, strip_digits=True)
        if len(name) < MIN_NAME_LENGTH:
            return None

        return ExtractedProduct(
            name=name,
            price=price,
            stock=extract_quantity(text),
            category=DEFAULT_CATEGORY,
        )

    # ── Pass B: flat text ─────────────────────────────────────────────────────

    def extract_from_text(self, html: str) -> List[ExtractedProduct]:
        """Flat-text heuristic over the tag-stripped document."""
        try:
            return self._text_items(html, mode="html")
        except Exception as e:
            logger.warning(f"[NfceHtmlExtractor] flat-text pass failed: {e}")
            return []
