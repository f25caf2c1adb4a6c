"""
Integrated Receipt Processing Pipeline
Connects image capture, OCR, QR decoding, NFCe consultation and product
extraction into one coordinator used by the API

    photo of paper receipt ─► OCR ─► OcrTextExtractor ─────────────┐
    scanned QR / URL ──────► nfce_url ─► NfceConsultant ───────────┼─► products
    photo of the QR code ──► QRDecoder ─► (same as scanned URL) ───┘

    reviewed products ─► categories lookup ─► POST /api/products
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from backend_client import InventoryBackendClient, resolve_category_ids
from errors import (
    FetchFailure,
    ImageProcessingFailed,
    NoProductsFound,
    ProductValidationError,
    RemoteFetchFailed,
)
from extractor import ExtractorFactory
from extractor.models import ExtractedProduct
from nfce_client import BackendCredentials, NfceConsultant
from nfce_url import NormalizedUrl, normalize_and_validate
from ocr_engine import OCREngine
from qr_decoder import QRDecoder
from utils import format_processing_time, load_config


@dataclass
class ExtractionResult:
    products: List[ExtractedProduct]
    source: str                         # "ocr" | "nfce"
    source_url: Optional[str] = None
    text: Optional[str] = None
    processing_time_ms: int = 0
    details: Dict[str, Any] = field(default_factory=dict)


class ReceiptProcessor:
    """
    End-to-end receipt processing pipeline

    Every call works on its own local state; the only shared objects are the
    (lazily loaded) OCR model and the extractor instances, which hold no
    per-call data.
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        ocr_engine: Optional[OCREngine] = None,
        qr_decoder: Optional[QRDecoder] = None,
        consultant: Optional[NfceConsultant] = None,
        backend: Optional[InventoryBackendClient] = None,
    ):
        logger.info("Initializing Receipt Processor Pipeline")
        self.config = config if config is not None else load_config()

        self.extractors = ExtractorFactory(self.config.get("extraction", {}))

        ocr_config = dict(self.config.get("ocr", {}))
        ocr_config["preprocessing"] = self.config.get("preprocessing", {})
        self.ocr_engine = ocr_engine or OCREngine(ocr_config)
        self.qr_decoder = qr_decoder or QRDecoder(self.config.get("qr", {}))
        self.consultant = consultant or NfceConsultant(
            self.config.get("nfce", {}),
            extractor=self.extractors.get_extractor("nfce_html"),
        )

        backend_config = self.config.get("backend", {})
        self.backend_url = backend_config.get("base_url") or ""
        if backend is None and self.backend_url:
            backend = InventoryBackendClient(
                self.backend_url,
                timeout=float(backend_config.get("timeout_seconds", 15.0)),
            )
        self.backend = backend

        logger.success("Receipt Processor ready")

    # ── Paper receipts ────────────────────────────────────────────────────────

    async def process_image(self, image_path: str) -> ExtractionResult:
        """
        OCR a receipt photo and extract its products.

        The OCR model is CPU-bound, so it runs in a worker thread.
        """
        logger.info(f"Processing receipt image: {image_path}")
        ocr_result = await asyncio.to_thread(self.ocr_engine.extract_text, image_path)

        result = self.process_text(ocr_result.get("text", ""))
        result.processing_time_ms = ocr_result.get("processing_time_ms", 0)
        logger.info(
            f"{len(result.products)} product(s) from {image_path} "
            f"(OCR {format_processing_time(result.processing_time_ms)})"
        )
        result.details = {
            "lines_detected": ocr_result.get("lines_detected", 0),
            "average_confidence": ocr_result.get("average_confidence", 0.0),
        }
        return result

    def process_text(self, text: str) -> ExtractionResult:
        """Extract products from already recognised receipt text."""
        products = self.extractors.get_extractor("ocr_text").extract(text)
        if not products:
            raise NoProductsFound()
        return ExtractionResult(products=products, source="ocr", text=text)

    # ── NFCe ──────────────────────────────────────────────────────────────────

    def validate_url(self, scanned: str) -> NormalizedUrl:
        return normalize_and_validate(scanned)

    async def consult_url(self, scanned: str, token: Optional[str] = None) -> ExtractionResult:
        """
        Validate a scanned QR payload and consult the fiscal document.

        The backend proxy is used when both a backend URL and a token are
        available, otherwise the page is fetched directly.
        """
        normalized = normalize_and_validate(scanned)
        credentials = BackendCredentials(base_url=self.backend_url, token=token or "")

        products = await self.consultant.consult_normalized(normalized, credentials)
        if not products:
            raise NoProductsFound()

        return ExtractionResult(products=products, source="nfce", source_url=normalized.url)

    async def process_qr_image(self, image_path: str, token: Optional[str] = None) -> ExtractionResult:
        payload = await asyncio.to_thread(self.qr_decoder.decode, image_path)
        if not payload:
            raise ImageProcessingFailed("Nenhum QR Code encontrado na imagem")
        return await self.consult_url(payload, token)

    # ── Inventory import ──────────────────────────────────────────────────────

    async def import_products(self, products: List[Any], token: str) -> Any:
        """Resolve category guesses to backend ids, then create the batch."""
        if not products:
            raise ProductValidationError("A lista de produtos não pode estar vazia")
        if self.backend is None:
            raise RemoteFetchFailed(
                "Serviço de inventário não configurado (INVENTORY_API_URL).",
                FetchFailure.NETWORK,
            )

        categories = await self.backend.get_categories(token)
        resolved = resolve_category_ids(products, categories)
        logger.info(f"Importing {len(resolved)} product(s) against {len(categories)} categories")
        return await self.backend.create_products(resolved, token)
