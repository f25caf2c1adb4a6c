"""
Receipt Assembler
=================
Folds a stream of classified lines into ExtractedProduct records.

All per-document state lives in one explicit accumulator (AssemblyState),
created fresh for every call:

  products   emitted so far
  current    the open product, if any
  pending    last text line not yet attached to anything
  category   running category guess, seeded "Outros"

Two receipt layouts are handled by the same fold:

  inline     "2x Arroz 5kg R$ 12,50"           → PRODUCT_START
  two-line   "Leite Integral 1L" / "R$ 4,50"   → CONTINUATION then PRICE_ONLY
"""

from dataclasses import dataclass, field
from functools import reduce
from typing import Dict, Iterable, List, Optional

from loguru import logger

from extractor.category_guesser import guess_category
from extractor.line_classifier import MIN_NAME_LENGTH, ClassifiedLine, LineKind, classify
from extractor.models import DEFAULT_CATEGORY, MAX_NAME_LENGTH, ExtractedProduct
from extractor.patterns import strip_amounts


@dataclass
class AssemblyState:
    category_table: Optional[Dict[str, List[str]]] = None
    products: List[ExtractedProduct] = field(default_factory=list)
    current: Optional[ExtractedProduct] = None
    pending: Optional[ClassifiedLine] = None
    category: str = DEFAULT_CATEGORY


# ─── State transitions ────────────────────────────────────────────────────────

def _append_description(product: ExtractedProduct, text: str) -> None:
    text = text.strip()
    if not text:
        return
    product.description = f"{product.description} {text}" if product.description else text


def _flush_pending(state: AssemblyState) -> None:
    """Attach the pending text line to the open product, or drop it."""
    if state.pending is None:
        return
    if state.current is not None:
        _append_description(state.current, state.pending.text)
    state.pending = None


def _close_current(state: AssemblyState) -> None:
    if state.current is not None:
        state.products.append(state.current)
        state.current = None


def _open_product(state: AssemblyState, name: str, line: ClassifiedLine, quantity: int) -> None:
    state.current = ExtractedProduct(
        name=name,
        price=line.price,
        description=name if len(name) > MAX_NAME_LENGTH else "",
        stock=quantity,
        category=state.category,
    )


def fold_line(state: AssemblyState, line: ClassifiedLine) -> AssemblyState:
    """Apply one classified line to the accumulator."""
    if line.kind == LineKind.NOISE:
        return state

    guessed = guess_category(line.text, state.category_table)
    if guessed:
        state.category = guessed

    if line.kind == LineKind.PRODUCT_START:
        _flush_pending(state)
        _close_current(state)
        _open_product(state, line.name, line, line.quantity)

    elif line.kind == LineKind.PRICE_ONLY:
        pending = state.pending
        if pending is None:
            return state
        name = strip_amounts(pending.text)
        state.pending = None
        if len(name) < MIN_NAME_LENGTH:
            return state
        quantity = line.quantity if line.quantity != 1 else pending.quantity
        _close_current(state)
        _open_product(state, name, line, quantity)

    elif line.kind == LineKind.CONTINUATION:
        _flush_pending(state)
        state.pending = line

    return state


def finish(state: AssemblyState) -> List[ExtractedProduct]:
    """Flush what is still open and return the valid products."""
    _flush_pending(state)
    _close_current(state)
    return [p for p in state.products if p.is_valid]


def assemble(
    lines: Iterable[str],
    category_table: Optional[Dict[str, List[str]]] = None,
) -> List[ExtractedProduct]:
    """Classify and fold ``lines`` into products."""
    state = reduce(
        fold_line,
        (classify(line) for line in lines),
        AssemblyState(category_table=category_table),
    )
    products = finish(state)
    logger.debug(f"[Assembler] {len(products)} product(s) assembled")
    return products
