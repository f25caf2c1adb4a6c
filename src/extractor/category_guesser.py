"""
Keyword-based category guess for receipt lines.

First category (in table order) with a matching keyword wins. Matching is
case- and accent-insensitive because OCR often drops diacritics.
"""

import unicodedata
from typing import Dict, List, Optional

from extractor.models import DEFAULT_CATEGORY


DEFAULT_CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "Alimentos": ["alimento", "comida", "bebida", "leite", "pão", "arroz", "feijão"],
    "Limpeza":   ["limpeza", "sabão", "detergente", "desinfetante"],
}


def fold_text(text: str) -> str:
    """Lowercase and strip accents ("Feijão" -> "feijao")."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()


def guess_category(line: str, table: Optional[Dict[str, List[str]]] = None) -> Optional[str]:
    """Return the category whose keyword occurs in ``line``, or None."""
    folded = fold_text(line)
    for category, keywords in (table or DEFAULT_CATEGORY_KEYWORDS).items():
        for keyword in keywords:
            if fold_text(keyword) in folded:
                return category
    return None


def guess_category_or_default(line: str, table: Optional[Dict[str, List[str]]] = None) -> str:
    return guess_category(line, table) or DEFAULT_CATEGORY
