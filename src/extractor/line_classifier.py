"""
Line Classifier
===============
Labels one receipt line at a time:

  NOISE          header/footer/total/tax-id line
  PRODUCT_START  has a price and a usable name on the same line
  PRICE_ONLY     has a price but no name ("R$ 4,50" under "Leite Integral 1L")
  CONTINUATION   no price, long enough to be description or a product name
  UNCLASSIFIED   anything else, dropped

Whether a CONTINUATION actually continues a product is decided by the
assembler, which owns the "current product" slot.
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from extractor.patterns import extract_price, extract_quantity, strip_amounts


MIN_CONTINUATION_LENGTH = 6   # continuation lines must exceed 5 chars
MIN_NAME_LENGTH         = 3   # derived names must exceed 2 chars


class LineKind(str, Enum):
    NOISE = "noise"
    PRODUCT_START = "product_start"
    PRICE_ONLY = "price_only"
    CONTINUATION = "continuation"
    UNCLASSIFIED = "unclassified"


# ─── Noise patterns ───────────────────────────────────────────────────────────

_NOISE_KEYWORDS = (
    r'sub\s*total|total|descontos?|impostos?|tributos?|troco|'
    r'cnpj|cpf|nota\s+fiscal|chave(?:\s+de\s+acesso)?|'
    r'valor\s+a\s+pagar|forma\s+de\s+pagamento'
)

_NOISE_ANYWHERE = re.compile(r'\b(?:' + _NOISE_KEYWORDS + r')\b', re.IGNORECASE)

# Summary labels that open the line: "TOTAL R$ 16,50", "Valor total: R$ 9,90"
_NOISE_LABEL = re.compile(
    r'^\W*(?:(?:valor|vl\.?|qtd\.?|qtde\.?)\s+)?(?:' + _NOISE_KEYWORDS + r')\b',
    re.IGNORECASE,
)

# 12.345.678/0001-90  or  123.456.789-09
_TAX_ID = re.compile(r'\b\d{2}\.\d{3}\.\d{3}/\d{4}-\d{2}\b|\b\d{3}\.\d{3}\.\d{3}-\d{2}\b')


@dataclass
class ClassifiedLine:
    kind: LineKind
    text: str
    price: Optional[Decimal] = None
    quantity: int = 1
    name: str = ""


def is_noise(line: str, price: Optional[Decimal] = None) -> bool:
    """
    Denylisted lines are noise when they carry no price.

    With a price present, only a leading summary label ("TOTAL ...",
    "Desconto ...") keeps the line out; a keyword buried inside a product
    name does not.
    """
    s = line.strip()
    if _TAX_ID.search(s):
        return True
    if not _NOISE_ANYWHERE.search(s):
        return False
    if price is None:
        return True
    return bool(_NOISE_LABEL.match(s))


def classify(line: str) -> ClassifiedLine:
    """Classify a single trimmed line."""
    s = (line or "").strip()
    price = extract_price(s)

    if is_noise(s, price):
        return ClassifiedLine(LineKind.NOISE, s, price=price)

    if price is not None:
        if price <= 0:
            return ClassifiedLine(LineKind.UNCLASSIFIED, s, price=price)
        quantity = extract_quantity(s)
        name = strip_amounts(s)
        if len(name) >= MIN_NAME_LENGTH:
            return ClassifiedLine(LineKind.PRODUCT_START, s, price, quantity, name)
        return ClassifiedLine(LineKind.PRICE_ONLY, s, price, quantity)

    if len(s) >= MIN_CONTINUATION_LENGTH:
        return ClassifiedLine(LineKind.CONTINUATION, s, quantity=extract_quantity(s))

    return ClassifiedLine(LineKind.UNCLASSIFIED, s)
