"""
Tests for price / quantity patterns and line tokenizing
"""

import pytest
import sys
from decimal import Decimal
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from extractor.patterns import extract_price, extract_quantity, strip_amounts
from extractor.tokenizer import html_to_text, tokenize


# ─── Prices ───────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("text,expected", [
    ("R$ 4,50", Decimal("4.50")),
    ("R$0,99", Decimal("0.99")),
    ("Arroz R$ 25,90", Decimal("25.90")),
    ("R$ 123456,78", Decimal("123456.78")),
    ("R$ 1.234,56", Decimal("1234.56")),
])
def test_extract_price(text, expected):
    assert extract_price(text) == expected


def test_price_integer_part_of_any_length():
    for digits in ("0", "7", "42", "999", "10000", "31415926535"):
        assert extract_price(f"R$ {digits},05") == Decimal(f"{digits}.05")


@pytest.mark.parametrize("text", [
    "Leite Integral",
    "12,50",            # no currency marker
    "R$ 12,5",          # one fraction digit
    "R$ 12,505",        # three fraction digits
    "",
])
def test_extract_price_absent(text):
    assert extract_price(text) is None


def test_first_price_wins():
    assert extract_price("R$ 3,00 x R$ 9,00") == Decimal("3.00")


# ─── Quantities ───────────────────────────────────────────────────────────────

@pytest.mark.parametrize("text,expected", [
    ("2x Arroz 5kg R$ 12,50", 2),
    ("Detergente 3 un R$ 2,99", 3),
    ("Sabonete 4 UNID", 4),
    ("Farinha 500 g", 500),
    ("Refrigerante 2L", 2),
    ("Iogurte 170ml", 170),
])
def test_extract_quantity(text, expected):
    assert extract_quantity(text) == expected


@pytest.mark.parametrize("text", [
    "Leite Integral R$ 4,50",
    "Banana prata",
    "R$ 1,5kg",             # decimal part is not a quantity
])
def test_quantity_defaults_to_one(text):
    assert extract_quantity(text) == 1


def test_price_and_quantity_are_independent():
    line = "2x Arroz 5kg R$ 12,50"
    assert extract_price(line) == Decimal("12.50")
    assert extract_quantity(line) == 2


# ─── Name derivation ──────────────────────────────────────────────────────────

def test_strip_amounts_flat_line():
    assert strip_amounts("2x Arroz Tipo 1 R$ 12,50") == "Arroz Tipo 1"


def test_strip_amounts_structural_row():
    assert strip_amounts("001 Leite Integral 2 UN R$ 4,50 R$ 9,00", strip_digits=True) == "Leite Integral"


# ─── Tokenizer ────────────────────────────────────────────────────────────────

def test_plain_tokenize_trims_and_skips_blank_lines():
    raw = "  Leite Integral 1L \n\n\tR$ 4,50\n   \n"
    assert list(tokenize(raw)) == ["Leite Integral 1L", "R$ 4,50"]


def test_tokenize_is_restartable():
    raw = "a\nb"
    assert list(tokenize(raw)) == list(tokenize(raw)) == ["a", "b"]


def test_html_tokenize_drops_scripts_and_short_lines():
    html = """
    <html><head><style>.x { color: red }</style>
    <script>var total = "R$ 99,99";</script></head>
    <body><div>Emitente</div><p>Arroz Tipo 1 R$ 25,90</p>
    <table><tr><td>Feijao</td><td>R$ 8,49</td></tr></table></body></html>
    """
    lines = list(tokenize(html, mode="html"))

    assert "Arroz Tipo 1 R$ 25,90" in lines
    assert "Feijao R$ 8,49" in lines
    assert "Emitente" not in lines          # 8 chars, below the html threshold
    assert not any("99,99" in line for line in lines)


def test_html_to_text_collapses_nbsp():
    lines = list(tokenize("<p>Leite&nbsp;&nbsp;Integral R$ 4,50</p>", mode="html"))
    assert lines == ["Leite Integral R$ 4,50"]


def test_html_to_text_keeps_rows_apart():
    text = html_to_text("<table><tr><td>A</td></tr><tr><td>B</td></tr></table>")
    assert [line.strip() for line in text.splitlines() if line.strip()] == ["A", "B"]


def test_unknown_mode():
    with pytest.raises(ValueError):
        list(tokenize("x", mode="pdf"))
