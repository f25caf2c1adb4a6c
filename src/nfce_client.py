"""
NFCe Remote Consultation
========================
Turns a scanned NFCe URL into products using exactly ONE strategy per call:

  backend  POST {base}/api/nfce/consult; the inventory backend fetches and
           parses the SEFAZ page (preferred; needs a token and a base URL)
  direct   GET the SEFAZ URL from here and parse it locally

There is no automatic retry and no fallback from backend to direct fetch.
Every failure leaves as a classified RemoteFetchFailed.

Direct fetch body handling (never raises once the body is in hand):

  synthetic page ──► one secondary GET of the full DANFE viewer
                       ├─ ok     → structural/flat extraction of the DANFE body
                       └─ failed → flat-text extraction of the synthetic body
  regular page   ──► structural extraction, flat-text when no rows qualify
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx
from loguru import logger

from backend_client import raise_for_backend_status, response_message, transport_error
from errors import FetchFailure, RemoteFetchFailed
from extractor.models import ExtractedProduct
from extractor.nfce_html_extractor import NfceHtmlExtractor, is_synthetic
from nfce_url import DEFAULT_DANFE_VIEWERS, NormalizedUrl, build_full_danfe_url, normalize_and_validate


DEFAULT_TIMEOUT = 20.0
MAX_REDIRECTS   = 5

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept-Language": "pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7",
}

# 404 bodies that mean "no products on this receipt", not "no such route"
_EMPTY_RESULT_MARKERS = ("produto", "nenhum")


@dataclass
class BackendCredentials:
    base_url: str = ""
    token: str = ""

    @property
    def usable(self) -> bool:
        return bool(self.base_url and self.token)


# ─── Strategies ───────────────────────────────────────────────────────────────

class BackendProxyStrategy:
    """Ask the inventory backend to consult the receipt."""

    name = "backend"

    def __init__(self, credentials: BackendCredentials, timeout: float, transport=None):
        self.credentials = credentials
        self.timeout = timeout
        self._transport = transport

    async def fetch_products(self, normalized: NormalizedUrl) -> List[ExtractedProduct]:
        endpoint = f"{self.credentials.base_url.rstrip('/')}/api/nfce/consult"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    endpoint,
                    json={"qrCodeUrl": normalized.url},
                    headers={"Authorization": f"Bearer {self.credentials.token}"},
                )
        except httpx.HTTPError as e:
            logger.error(f"[BackendProxy] request failed: {e}")
            raise transport_error(e, "servidor") from e

        logger.info(f"[BackendProxy] {endpoint} → {response.status_code}")

        if response.status_code == 404:
            message = response_message(response)
            if any(marker in message.lower() for marker in _EMPTY_RESULT_MARKERS):
                logger.info(f"[BackendProxy] backend found no products: {message!r}")
                return []
        raise_for_backend_status(response)

        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict) or not isinstance(body.get("products"), list):
            raise RemoteFetchFailed(
                "Resposta do backend inválida.",
                FetchFailure.INVALID_RESPONSE,
                response.status_code,
            )

        products = []
        for raw in body["products"]:
            product = ExtractedProduct.from_dict(raw) if isinstance(raw, dict) else None
            if product is None:
                logger.warning(f"[BackendProxy] dropping invalid product entry: {raw!r}")
                continue
            products.append(product)
        return products


class DirectFetchStrategy:
    """Fetch the tax-authority page directly and parse it here."""

    name = "direct"

    def __init__(
        self,
        timeout: float,
        headers: Optional[Dict[str, str]] = None,
        danfe_viewers: Optional[Dict[str, str]] = None,
        extractor: Optional[NfceHtmlExtractor] = None,
        transport=None,
    ):
        self.timeout = timeout
        self.headers = headers or DEFAULT_HEADERS
        self.danfe_viewers = DEFAULT_DANFE_VIEWERS if danfe_viewers is None else danfe_viewers
        self.extractor = extractor or NfceHtmlExtractor()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            max_redirects=MAX_REDIRECTS,
            headers=self.headers,
            transport=self._transport,
        )

    async def _get(self, client: httpx.AsyncClient, url: str) -> str:
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            logger.error(f"[DirectFetch] GET {url} failed: {e}")
            raise transport_error(e, "portal da SEFAZ") from e

        if response.status_code == 403:
            raise RemoteFetchFailed(
                "A SEFAZ recusou a consulta direta (restrição de origem). "
                "Use o serviço backend para consultar a nota fiscal.",
                FetchFailure.CROSS_ORIGIN,
                403,
            )
        if response.status_code >= 400:
            raise RemoteFetchFailed(
                f"Erro ao consultar a SEFAZ ({response.status_code}): {response.reason_phrase}",
                FetchFailure.SERVER_ERROR,
                response.status_code,
            )

        logger.info(
            f"[DirectFetch] {response.status_code} from {response.url} "
            f"({len(response.text)} chars)"
        )
        return response.text

    async def fetch_products(self, normalized: NormalizedUrl) -> List[ExtractedProduct]:
        async with self._client() as client:
            body = await self._get(client, normalized.url)

            if is_synthetic(body):
                return await self._products_from_synthetic(client, normalized, body)

        return await asyncio.to_thread(self.extractor.extract_structured_or_text, body)

    async def _products_from_synthetic(
        self,
        client: httpx.AsyncClient,
        normalized: NormalizedUrl,
        body: str,
    ) -> List[ExtractedProduct]:
        danfe_url = build_full_danfe_url(normalized, self.danfe_viewers)
        if danfe_url is None:
            logger.info("[DirectFetch] synthetic page, no DANFE viewer for this host — flat text")
            return await asyncio.to_thread(self.extractor.extract_from_text, body)

        logger.info(f"[DirectFetch] synthetic page detected — trying full DANFE {danfe_url}")
        try:
            danfe_body = await self._get(client, danfe_url)
        except RemoteFetchFailed as e:
            logger.warning(f"[DirectFetch] full DANFE unavailable ({e.message}) — using synthetic page")
            return await asyncio.to_thread(self.extractor.extract_from_text, body)

        return await asyncio.to_thread(self.extractor.extract_structured_or_text, danfe_body)


# ─── Coordinator ──────────────────────────────────────────────────────────────

class NfceConsultant:
    """
    Validates a scanned URL and consults it with the appropriate strategy.

    Configuration keys (section ``nfce``): timeout_seconds, headers,
    danfe_viewers.
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        extractor: Optional[NfceHtmlExtractor] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or {}
        self.timeout = float(self.config.get("timeout_seconds", DEFAULT_TIMEOUT))
        self.extractor = extractor or NfceHtmlExtractor()
        self._transport = transport

    def select_strategy(self, credentials: Optional[BackendCredentials] = None):
        if credentials is not None and credentials.usable:
            return BackendProxyStrategy(credentials, self.timeout, self._transport)
        return DirectFetchStrategy(
            timeout=self.timeout,
            headers=self.config.get("headers"),
            danfe_viewers=self.config.get("danfe_viewers"),
            extractor=self.extractor,
            transport=self._transport,
        )

    async def consult(
        self,
        scanned_url: str,
        credentials: Optional[BackendCredentials] = None,
    ) -> List[ExtractedProduct]:
        normalized = normalize_and_validate(scanned_url)
        return await self.consult_normalized(normalized, credentials)

    async def consult_normalized(
        self,
        normalized: NormalizedUrl,
        credentials: Optional[BackendCredentials] = None,
    ) -> List[ExtractedProduct]:
        strategy = self.select_strategy(credentials)
        logger.info(f"[NfceConsultant] consulting {normalized.url} via {strategy.name}")
        products = await strategy.fetch_products(normalized)
        logger.info(f"[NfceConsultant] {len(products)} product(s) via {strategy.name}")
        return products
