"""
Inventory backend client.

Thin async wrapper over the household-inventory REST API:

    GET  /api/categories        → [{id, name}]
    POST /api/products          → single product object or an array (batch)
    POST /api/nfce/consult      → used by nfce_client.BackendProxyStrategy

HTTP failures are turned into RemoteFetchFailed with a classified reason so
callers can show one descriptive message.
"""

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Union

import httpx
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

from errors import FetchFailure, ProductValidationError, RemoteFetchFailed
from extractor.models import ExtractedProduct


DEFAULT_TIMEOUT = 15.0


# ─── Payload models ───────────────────────────────────────────────────────────

class Category(BaseModel):
    id: int
    name: str


class ProductPayload(BaseModel):
    """Validated body for POST /api/products."""
    name: str = Field(..., min_length=1)
    description: str = ""
    price: float = Field(..., ge=0)
    stock: int = Field(..., ge=0)
    expiration_date: Optional[date] = None
    id_category: Optional[int] = None

    @field_validator("name", "description", mode="before")
    @classmethod
    def _strip(cls, value):
        return str(value or "").strip()

    @field_validator("id_category", mode="before")
    @classmethod
    def _positive_category(cls, value):
        try:
            value = int(value)
        except (TypeError, ValueError):
            return None
        return value if value > 0 else None


def _as_dict(product: Union[ExtractedProduct, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(product, ExtractedProduct):
        data = product.to_dict()
        data["id_category"] = product.id_category
        return data
    return dict(product)


def _coerce_number(value, cast, default=0):
    try:
        return cast(value)
    except (TypeError, ValueError):
        return default


def build_product_payload(product: Union[ExtractedProduct, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Validate one reviewed product and return the JSON the backend accepts.

    Optional fields (expiration_date, id_category) are omitted unless valid.
    """
    data = _as_dict(product)

    expiration = data.get("expiration_date")
    if isinstance(expiration, datetime):
        expiration = expiration.date()
    elif isinstance(expiration, str):
        expiration = expiration.strip()[:10] or None

    raw = {
        "name": data.get("name"),
        "description": data.get("description"),
        "price": _coerce_number(data.get("price"), float),
        "stock": _coerce_number(data.get("stock"), lambda v: int(float(v))),
        "expiration_date": expiration,
        "id_category": data.get("id_category"),
    }

    try:
        payload = ProductPayload(**raw)
    except ValidationError as e:
        first = e.errors()[0]
        field = first.get("loc", ("?",))[0]
        messages = {
            "name": "Nome do produto é obrigatório",
            "price": "Preço não pode ser negativo",
            "stock": "Estoque não pode ser negativo",
            "expiration_date": "Data de validade inválida",
        }
        raise ProductValidationError(messages.get(field, f"Produto inválido: {field}")) from e

    return payload.model_dump(mode="json", exclude_none=True)


def resolve_category_ids(
    products: Iterable[Union[ExtractedProduct, Dict[str, Any]]],
    categories: Iterable[Category],
) -> List[Union[ExtractedProduct, Dict[str, Any]]]:
    """
    Map each product's free-text category guess to a backend category id.

    Case-insensitive name match; unmatched guesses leave id_category unset.
    An id already chosen during review is kept.
    """
    by_name = {c.name.strip().lower(): c.id for c in categories}
    resolved = []
    for product in products:
        if isinstance(product, ExtractedProduct):
            if product.id_category is None:
                product.id_category = by_name.get((product.category or "").strip().lower())
        else:
            product = dict(product)
            if not product.get("id_category"):
                guess = str(product.get("category") or "").strip().lower()
                product["id_category"] = by_name.get(guess)
        resolved.append(product)
    return resolved


# ─── Error classification ─────────────────────────────────────────────────────

def response_message(response: httpx.Response) -> str:
    """Backend ``message`` field, or an empty string."""
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        return str(body.get("message") or "")
    return ""


def raise_for_backend_status(response: httpx.Response) -> None:
    """Turn a 4xx/5xx backend response into RemoteFetchFailed."""
    status = response.status_code
    if status < 400:
        return

    message = response_message(response)
    if status == 404:
        raise RemoteFetchFailed(
            f"Rota não encontrada no backend ({response.request.url.path}). "
            "Verifique se a rota está registrada corretamente.",
            FetchFailure.ROUTE_NOT_FOUND,
            status,
        )
    if status in (401, 403):
        raise RemoteFetchFailed(
            "Não autorizado. Verifique seu token de autenticação.",
            FetchFailure.UNAUTHORIZED,
            status,
        )
    raise RemoteFetchFailed(
        message or f"Erro no servidor ({status}): {response.reason_phrase}",
        FetchFailure.SERVER_ERROR,
        status,
    )


def transport_error(e: httpx.HTTPError, target: str = "servidor") -> RemoteFetchFailed:
    """Classify a transport-level httpx failure."""
    if isinstance(e, httpx.TimeoutException):
        return RemoteFetchFailed(
            f"Tempo esgotado ao consultar o {target}. Tente novamente.",
            FetchFailure.TIMEOUT,
        )
    return RemoteFetchFailed(
        f"Não foi possível conectar ao {target}. Verifique se o serviço está disponível.",
        FetchFailure.NETWORK,
    )


# ─── Client ───────────────────────────────────────────────────────────────────

class InventoryBackendClient:
    """Async client for the inventory REST API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise ValueError("Inventory backend base URL is not configured")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    @staticmethod
    def _headers(token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    async def request(self, method: str, path: str, token: str, **kwargs) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, path, headers=self._headers(token), **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"[Backend] {method} {path} failed: {e}")
            raise transport_error(e, "servidor") from e
        logger.debug(f"[Backend] {method} {path} → {response.status_code}")
        return response

    async def get_categories(self, token: str) -> List[Category]:
        response = await self.request("GET", "/api/categories", token)
        raise_for_backend_status(response)
        try:
            return [Category(**c) for c in response.json()]
        except (ValueError, TypeError, ValidationError) as e:
            raise RemoteFetchFailed(
                "Resposta do backend inválida ao buscar categorias.",
                FetchFailure.INVALID_RESPONSE,
                response.status_code,
            ) from e

    async def create_products(
        self,
        products: Union[ExtractedProduct, Dict[str, Any], List[Union[ExtractedProduct, Dict[str, Any]]]],
        token: str,
    ) -> Any:
        """POST one product or a batch; payloads are validated first."""
        if isinstance(products, list):
            if not products:
                raise ProductValidationError("A lista de produtos não pode estar vazia")
            body: Any = [build_product_payload(p) for p in products]
            logger.info(f"[Backend] creating {len(body)} product(s) in batch")
        else:
            body = build_product_payload(products)

        response = await self.request("POST", "/api/products", token, json=body)
        raise_for_backend_status(response)
        try:
            return response.json()
        except ValueError:
            return {}
