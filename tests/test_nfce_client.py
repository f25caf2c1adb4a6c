"""
Tests for NFCe consultation strategies (network replaced by httpx.MockTransport)
"""

import httpx
import pytest
import sys
import threading
from decimal import Decimal
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from errors import FetchFailure, InvalidReceiptUrl, RemoteFetchFailed
from extractor.nfce_html_extractor import NfceHtmlExtractor
from nfce_client import BackendCredentials, BackendProxyStrategy, DirectFetchStrategy, NfceConsultant


KEY = "29240112345678000190650010000123451000123456"
QR = f"https://nfe.sefaz.ba.gov.br/servicos/nfce/qrcode.aspx?p={KEY}|2|1|1|ABCDEF"
BACKEND = "http://inventory.local"
CREDS = BackendCredentials(base_url=BACKEND, token="tok-123")

SYNTHETIC_PAGE = """
<html><body><h1>Consulta Sintetico</h1>
<div>Arroz Tipo 1 5kg R$ 25,90</div>
<div>Valor total R$ 25,90</div></body></html>
"""

FULL_DANFE = """
<html><body><table>
<tr><td>1</td><td>Leite Integral</td><td>2 UN</td><td>R$ 4,50</td></tr>
<tr><td>2</td><td>Cafe Torrado</td><td>1 UN</td><td>R$ 15,90</td></tr>
</table></body></html>
"""


def consultant_with(handler) -> NfceConsultant:
    return NfceConsultant(transport=httpx.MockTransport(handler))


# ─── Backend proxy ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_backend_returns_products():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = request.content
        return httpx.Response(200, json={"products": [
            {"name": "Leite", "price": 4.5, "stock": 2, "category": "Alimentos"},
            {"name": "", "price": 3.0},
            {"name": "Brinde", "price": 0},
        ]})

    products = await consultant_with(handler).consult(QR, CREDS)

    assert seen["url"] == f"{BACKEND}/api/nfce/consult"
    assert seen["auth"] == "Bearer tok-123"
    assert b"qrCodeUrl" in seen["body"]
    assert len(products) == 1
    assert products[0].name == "Leite"
    assert products[0].price == Decimal("4.5")
    assert products[0].stock == 2


@pytest.mark.asyncio
async def test_backend_404_without_products_is_empty_list():
    def handler(request):
        return httpx.Response(404, json={"message": "Nenhum produto encontrado na nota"})

    assert await consultant_with(handler).consult(QR, CREDS) == []


@pytest.mark.asyncio
async def test_backend_404_empty_markers_ignore_case():
    def handler(request):
        return httpx.Response(404, json={"message": "Produtos não encontrados"})

    assert await consultant_with(handler).consult(QR, CREDS) == []


@pytest.mark.asyncio
async def test_backend_404_unrelated_is_route_not_found():
    def handler(request):
        return httpx.Response(404, json={"message": "Cannot POST /api/nfce/consult"})

    with pytest.raises(RemoteFetchFailed) as exc:
        await consultant_with(handler).consult(QR, CREDS)
    assert exc.value.reason == FetchFailure.ROUTE_NOT_FOUND


@pytest.mark.asyncio
@pytest.mark.parametrize("status,reason", [
    (401, FetchFailure.UNAUTHORIZED),
    (403, FetchFailure.UNAUTHORIZED),
    (500, FetchFailure.SERVER_ERROR),
    (422, FetchFailure.SERVER_ERROR),
])
async def test_backend_status_classification(status, reason):
    def handler(request):
        return httpx.Response(status, json={"message": "falhou"})

    with pytest.raises(RemoteFetchFailed) as exc:
        await consultant_with(handler).consult(QR, CREDS)
    assert exc.value.reason == reason
    assert exc.value.status_code == status


@pytest.mark.asyncio
async def test_backend_server_message_is_surfaced():
    def handler(request):
        return httpx.Response(500, json={"message": "SEFAZ indisponível"})

    with pytest.raises(RemoteFetchFailed) as exc:
        await consultant_with(handler).consult(QR, CREDS)
    assert exc.value.message == "SEFAZ indisponível"


@pytest.mark.asyncio
async def test_backend_without_products_list_is_invalid_response():
    def handler(request):
        return httpx.Response(200, json={"ok": True})

    with pytest.raises(RemoteFetchFailed) as exc:
        await consultant_with(handler).consult(QR, CREDS)
    assert exc.value.reason == FetchFailure.INVALID_RESPONSE


@pytest.mark.asyncio
async def test_backend_timeout_and_network_errors():
    def timeout(request):
        raise httpx.ReadTimeout("slow", request=request)

    def refused(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(RemoteFetchFailed) as exc:
        await consultant_with(timeout).consult(QR, CREDS)
    assert exc.value.reason == FetchFailure.TIMEOUT

    with pytest.raises(RemoteFetchFailed) as exc:
        await consultant_with(refused).consult(QR, CREDS)
    assert exc.value.reason == FetchFailure.NETWORK


@pytest.mark.asyncio
async def test_backend_failure_does_not_fall_back_to_direct_fetch():
    hosts = []

    def handler(request):
        hosts.append(request.url.host)
        return httpx.Response(500)

    with pytest.raises(RemoteFetchFailed):
        await consultant_with(handler).consult(QR, CREDS)
    assert hosts == ["inventory.local"]


# ─── Direct fetch ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_direct_fetch_without_credentials():
    seen = {}

    def handler(request):
        seen["host"] = request.url.host
        seen["lang"] = request.headers.get("Accept-Language")
        return httpx.Response(200, text=FULL_DANFE)

    products = await consultant_with(handler).consult(QR, BackendCredentials(base_url=BACKEND))

    assert seen["host"] == "nfe.sefaz.ba.gov.br"
    assert seen["lang"].startswith("pt-BR")
    assert [p.name for p in products] == ["Leite Integral", "Cafe Torrado"]


@pytest.mark.asyncio
async def test_direct_fetch_parses_off_the_event_loop():
    loop_thread = threading.get_ident()
    parse_threads = []

    class RecordingExtractor(NfceHtmlExtractor):
        def extract_structured_or_text(self, html):
            parse_threads.append(threading.get_ident())
            return super().extract_structured_or_text(html)

    def handler(request):
        return httpx.Response(200, text=FULL_DANFE)

    consultant = NfceConsultant(extractor=RecordingExtractor(), transport=httpx.MockTransport(handler))
    products = await consultant.consult(QR)

    assert len(products) == 2
    assert parse_threads and loop_thread not in parse_threads


@pytest.mark.asyncio
async def test_direct_fetch_403_is_cross_origin():
    def handler(request):
        return httpx.Response(403)

    with pytest.raises(RemoteFetchFailed) as exc:
        await consultant_with(handler).consult(QR)
    assert exc.value.reason == FetchFailure.CROSS_ORIGIN
    assert "backend" in exc.value.message


@pytest.mark.asyncio
async def test_direct_fetch_server_error():
    def handler(request):
        return httpx.Response(503)

    with pytest.raises(RemoteFetchFailed) as exc:
        await consultant_with(handler).consult(QR)
    assert exc.value.reason == FetchFailure.SERVER_ERROR


@pytest.mark.asyncio
async def test_synthetic_page_fetches_full_danfe_once():
    paths = []

    def handler(request):
        paths.append(request.url.path)
        if request.url.path.endswith("NFCEC_consulta_danfe.aspx"):
            return httpx.Response(200, text=FULL_DANFE)
        return httpx.Response(200, text=SYNTHETIC_PAGE)

    products = await consultant_with(handler).consult(QR)

    assert len(paths) == 2
    assert paths[1].endswith("NFCEC_consulta_danfe.aspx")
    assert [p.name for p in products] == ["Leite Integral", "Cafe Torrado"]


@pytest.mark.asyncio
async def test_synthetic_page_falls_back_to_flat_text_when_danfe_fails():
    def handler(request):
        if request.url.path.endswith("NFCEC_consulta_danfe.aspx"):
            raise httpx.ConnectError("boom", request=request)
        return httpx.Response(200, text=SYNTHETIC_PAGE)

    products = await consultant_with(handler).consult(QR)

    assert len(products) == 1
    assert products[0].name == "Arroz Tipo 1"
    assert products[0].price == Decimal("25.90")


@pytest.mark.asyncio
async def test_synthetic_page_without_known_viewer_uses_flat_text():
    calls = []

    def handler(request):
        calls.append(request.url.host)
        return httpx.Response(200, text=SYNTHETIC_PAGE)

    url = f"https://www.sefaz.rs.gov.br/NFCE/NFCE-COM.aspx?p={KEY}|2|1|1|X"
    products = await consultant_with(handler).consult(url)

    assert calls == ["www.sefaz.rs.gov.br"]
    assert [p.price for p in products] == [Decimal("25.90")]


@pytest.mark.asyncio
async def test_invalid_url_never_touches_the_network():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200)

    with pytest.raises(InvalidReceiptUrl):
        await consultant_with(handler).consult("example.com/page")
    assert calls == []


def test_strategy_selection():
    consultant = NfceConsultant()
    assert isinstance(consultant.select_strategy(CREDS), BackendProxyStrategy)
    assert isinstance(consultant.select_strategy(BackendCredentials(token="t")), DirectFetchStrategy)
    assert isinstance(consultant.select_strategy(None), DirectFetchStrategy)
