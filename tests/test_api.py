"""
Tests for the FastAPI routes (pipeline collaborators faked)
"""

import httpx
import pytest
import sys
from pathlib import Path

from fastapi import FastAPI
from fastapi.testclient import TestClient

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from api import get_processor, register_exception_handlers, router
from api.handlers import status_for
from errors import (
    FetchFailure,
    ImageProcessingFailed,
    InvalidReceiptUrl,
    NoProductsFound,
    ProductValidationError,
    RemoteFetchFailed,
)
from nfce_client import NfceConsultant
from receipt_processor import ReceiptProcessor
from utils import load_config


KEY = "29240112345678000190650010000123451000123456"
QR = f"https://nfe.sefaz.ba.gov.br/servicos/nfce/qrcode.aspx?p={KEY}|2|1|1|ABCDEF"
PAGE = "<table><tr><td>1</td><td>Leite Integral</td><td>2 UN</td><td>R$ 4,50</td></tr></table>"


class FakeOCR:
    def __init__(self):
        self.paths = []

    def extract_text(self, image_path):
        self.paths.append(image_path)
        assert Path(image_path).exists()
        return {"status": "success", "text": "Arroz Tipo 1 R$ 25,90", "processing_time_ms": 7}


class FakeQR:
    def decode(self, image_path):
        return QR


@pytest.fixture
def processor(tmp_path):
    config = load_config("does-not-exist.yaml")
    config["api"]["upload_dir"] = str(tmp_path / "uploads")
    consultant = NfceConsultant(
        config["nfce"],
        transport=httpx.MockTransport(lambda request: httpx.Response(200, text=PAGE)),
    )
    return ReceiptProcessor(config, ocr_engine=FakeOCR(), qr_decoder=FakeQR(), consultant=consultant)


@pytest.fixture
def client(processor):
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(router, prefix="/api/v1")
    app.dependency_overrides[get_processor] = lambda: processor
    return TestClient(app)


def test_scan_receipt(client, processor, tmp_path):
    response = client.post(
        "/api/v1/receipts/scan",
        files={"file": ("cupom.jpg", b"fake-jpeg-bytes", "image/jpeg")},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["source"] == "ocr"
    assert body["product_count"] == 1
    assert body["products"][0]["name"] == "Arroz Tipo 1"
    assert body["products"][0]["price"] == 25.9
    assert body["processing_time_ms"] == 7

    # upload stored under a uuid name and removed afterwards
    saved = Path(processor.ocr_engine.paths[0])
    assert saved.name != "cupom.jpg"
    assert not saved.exists()
    assert list((tmp_path / "uploads").iterdir()) == []


def test_scan_rejects_unknown_extension(client):
    response = client.post(
        "/api/v1/receipts/scan",
        files={"file": ("cupom.gif", b"GIF89a", "image/gif")},
    )
    assert response.status_code == 400


def test_parse_text(client):
    response = client.post("/api/v1/receipts/parse-text", json={"text": "Leite Integral 1L\nR$ 4,50"})
    assert response.status_code == 200
    assert response.json()["products"][0]["price"] == 4.5


def test_validate_url(client):
    response = client.post("/api/v1/nfce/validate", json={"qrCodeUrl": QR})
    assert response.status_code == 200
    body = response.json()
    assert body["access_key"] == KEY
    assert body["host"] == "nfe.sefaz.ba.gov.br"


def test_invalid_url_is_400_with_message(client):
    response = client.post("/api/v1/nfce/validate", json={"qrCodeUrl": "example.com/page"})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "InvalidReceiptUrl"
    assert "example.com/page" in body["message"]


def test_consult(client):
    response = client.post("/api/v1/nfce/consult", json={"qrCodeUrl": QR})
    assert response.status_code == 200
    body = response.json()
    assert body["source_url"] == QR
    assert body["products"][0]["name"] == "Leite Integral"
    assert body["products"][0]["stock"] == 2


def test_scan_qr(client):
    response = client.post(
        "/api/v1/nfce/scan-qr",
        files={"file": ("qr.png", b"fake-png-bytes", "image/png")},
    )
    assert response.status_code == 200
    assert response.json()["source"] == "nfce"


def test_import_requires_token(client):
    response = client.post("/api/v1/products/import", json={"products": [{"name": "Leite", "price": 4.5}]})
    assert response.status_code == 401


def test_import_without_backend_is_502(client):
    response = client.post(
        "/api/v1/products/import",
        json={"products": [{"name": "Leite", "price": 4.5}]},
        headers={"Authorization": "Bearer tok"},
    )
    assert response.status_code == 502
    assert response.json()["reason"] == "network"


@pytest.mark.parametrize("error,status", [
    (InvalidReceiptUrl("x"), 400),
    (ProductValidationError("x"), 422),
    (ImageProcessingFailed(), 422),
    (NoProductsFound(), 404),
    (RemoteFetchFailed("x", FetchFailure.TIMEOUT), 504),
    (RemoteFetchFailed("x", FetchFailure.UNAUTHORIZED), 401),
    (RemoteFetchFailed("x", FetchFailure.CROSS_ORIGIN), 502),
])
def test_status_mapping(error, status):
    assert status_for(error) == status
