"""
Monetary & quantity patterns shared by every extractor.

A line yields at most one price and at most one quantity; the two lookups
are independent ("2x Arroz 5kg R$ 12,50" has both).
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional


# ─── Compiled patterns ────────────────────────────────────────────────────────

# R$ 12,50   R$1.234,56   R$ 0,99
PRICE_PATTERN = re.compile(r'R\$\s*(\d{1,3}(?:\.\d{3})+|\d+),(\d{2})(?!\d)')

# 2x   3 un   1 unid   5kg   500 g   1L   350ml
# Not preceded by a decimal part, unit not followed by another letter.
QUANTITY_PATTERN = re.compile(
    r'(?<![\d.,])(\d+)\s*(unid|un|kg|ml|x|g|l)(?![a-zà-ÿ])',
    re.IGNORECASE,
)

_DIGITS   = re.compile(r'\d+')
_SPACES   = re.compile(r'\s+')
_EDGE_PUNCT = ' \t-–—:;,.|/*#()[]'

DEFAULT_QUANTITY = 1


def extract_price(line: str) -> Optional[Decimal]:
    """Return the first ``R$`` amount of the line as a Decimal, or None."""
    m = PRICE_PATTERN.search(line or "")
    if not m:
        return None
    integer = m.group(1).replace('.', '')
    try:
        value = Decimal(f"{integer}.{m.group(2)}")
    except InvalidOperation:
        return None
    if not value.is_finite() or value < 0:
        return None
    return value


def extract_quantity(line: str) -> int:
    """Return the first unit-quantity integer of the line, default 1."""
    m = QUANTITY_PATTERN.search(line or "")
    if not m:
        return DEFAULT_QUANTITY
    return int(m.group(1))


def strip_amounts(line: str, strip_digits: bool = False) -> str:
    """
    Remove price and quantity tokens from a line, leaving the product name.

    Flat text drops only the first price and quantity match; structural
    table rows (strip_digits=True) drop every match plus leftover digits.
    """
    text = line or ""
    if strip_digits:
        text = PRICE_PATTERN.sub(' ', text)
        text = QUANTITY_PATTERN.sub(' ', text)
        text = _DIGITS.sub(' ', text)
        text = text.replace('R$', ' ')
    else:
        text = PRICE_PATTERN.sub(' ', text, count=1)
        text = QUANTITY_PATTERN.sub(' ', text, count=1)
    text = _SPACES.sub(' ', text)
    return text.strip(_EDGE_PUNCT)
