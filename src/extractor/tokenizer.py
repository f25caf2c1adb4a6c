"""
Line tokenizer: turns raw OCR text or an HTML document into candidate lines.

Pure and lazy: ``tokenize`` is a generator, calling it again restarts it.
"""

import re
from typing import Iterator, Optional

from bs4 import BeautifulSoup


HTML_MIN_LINE_LENGTH  = 11   # html lines of 10 chars or fewer are markup noise
PLAIN_MIN_LINE_LENGTH = 1    # any non-empty OCR line is a candidate

_BLOCK_TAGS = (
    'br', 'p', 'div', 'tr', 'li', 'table', 'tbody', 'thead',
    'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'section', 'article',
)

_WHITESPACE = re.compile(r"[ \t\r\f\v\u00a0]+")


def html_to_text(raw: str) -> str:
    """
    Strip markup from an HTML/XML document.

    script/style blocks are removed with their contents; block-level
    boundaries become line breaks so table rows stay on separate lines.
    """
    soup = BeautifulSoup(raw or "", "html.parser")
    for tag in soup(['script', 'style', 'noscript']):
        tag.decompose()
    for tag in soup.find_all(_BLOCK_TAGS):
        tag.insert_before('\n')
        tag.insert_after('\n')
    for cell in soup.find_all(['td', 'th']):
        cell.insert_after(' ')
    return soup.get_text()


def tokenize(raw: str, mode: str = "plain", min_length: Optional[int] = None) -> Iterator[str]:
    """
    Yield trimmed candidate lines.

    Parameters
    ----------
    raw : str
        OCR text (mode="plain") or an HTML document (mode="html").
    mode : str
        "plain" or "html".
    min_length : int, optional
        Override the mode's minimum trimmed line length.
    """
    if mode not in ("plain", "html"):
        raise ValueError(f"Unknown tokenizer mode: {mode!r}")

    if mode == "html":
        text = html_to_text(raw)
        threshold = HTML_MIN_LINE_LENGTH if min_length is None else min_length
    else:
        text = raw or ""
        threshold = PLAIN_MIN_LINE_LENGTH if min_length is None else min_length

    for line in text.splitlines():
        s = _WHITESPACE.sub(' ', line).strip()
        if len(s) >= threshold:
            yield s
