"""
NFCe QR code URL validation and parsing.

A fiscal QR code encodes a URL on a state tax-authority host whose ``p``
query parameter carries pipe-delimited fields:

    https://nfe.sefaz.ba.gov.br/servicos/nfce/qrcode.aspx?p=<chave>|2|1|1|<hash>
                                                            ^key  ^ver ^env
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import parse_qs, urlsplit

from loguru import logger

from errors import InvalidReceiptUrl


FISCAL_HOST_MARKERS = ("sefaz", "nfce", "nfe")
MIN_PIPE_FIELDS = 4

DEFAULT_DANFE_VIEWERS: Dict[str, str] = {
    "sefaz.ba.gov.br": "http://nfe.sefaz.ba.gov.br/servicos/nfce/Modulos/Geral/NFCEC_consulta_danfe.aspx",
}

_SCHEME = re.compile(r'^https?://', re.IGNORECASE)


@dataclass
class NFCeUrlParams:
    access_key: str          # 44-digit fiscal document key
    version: str
    environment: str
    raw_param_string: str    # full "p" value, reused for alternate fetch URLs


@dataclass
class NormalizedUrl:
    url: str
    host: str
    params: NFCeUrlParams


def parse_nfce_url(url: str) -> NFCeUrlParams:
    """Split the ``p`` query parameter of an NFCe URL into its fields."""
    parts = urlsplit(url)
    values = parse_qs(parts.query, keep_blank_values=True).get("p")
    if not values or not values[0]:
        raise InvalidReceiptUrl(
            "URL do QR Code inválida - parâmetro 'p' não encontrado.", url
        )

    raw = values[0]
    fields = raw.split("|")
    if len(fields) < MIN_PIPE_FIELDS:
        raise InvalidReceiptUrl(
            f"Formato de QR Code inválido - esperado pelo menos {MIN_PIPE_FIELDS} "
            f"partes, encontrado {len(fields)}.",
            url,
        )

    if not (fields[0].isdigit() and len(fields[0]) == 44):
        logger.debug(f"[nfce_url] access key is not 44 digits: {fields[0]!r}")

    return NFCeUrlParams(
        access_key=fields[0],
        version=fields[1],
        environment=fields[2],
        raw_param_string=raw,
    )


def normalize_and_validate(scanned: str) -> NormalizedUrl:
    """
    Normalise a scanned QR string and confirm it is a fiscal receipt URL.

    Raises InvalidReceiptUrl (with the normalised URL) when the host/path
    has no fiscal marker, the query string is empty, or ``p`` is malformed.
    """
    url = (scanned or "").strip()
    if not url:
        raise InvalidReceiptUrl("Por favor, insira uma URL válida.")

    if not _SCHEME.match(url):
        url = f"https://{url}"

    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise InvalidReceiptUrl("URL do QR Code inválida.", url) from e

    location = f"{parts.netloc}{parts.path}".lower()
    if not any(marker in location for marker in FISCAL_HOST_MARKERS):
        raise InvalidReceiptUrl("QR Code não é de uma nota fiscal válida.", url)

    if not parts.query:
        raise InvalidReceiptUrl(
            "URL do QR Code parece estar incompleta (sem parâmetros). "
            "Certifique-se de que o QR Code foi escaneado completamente.",
            url,
        )

    params = parse_nfce_url(url)
    logger.debug(f"[nfce_url] valid NFCe URL host={parts.hostname} key={params.access_key}")
    return NormalizedUrl(url=url, host=(parts.hostname or "").lower(), params=params)


def build_full_danfe_url(
    normalized: NormalizedUrl,
    viewers: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    """
    Full DANFE viewer URL for authorities that serve a synthetic page by default.

    Returns None when the host has no known viewer.
    """
    for domain, viewer in (viewers if viewers is not None else DEFAULT_DANFE_VIEWERS).items():
        if normalized.host == domain or normalized.host.endswith(f".{domain}"):
            return f"{viewer}?p={normalized.params.raw_param_string}"
    return None
