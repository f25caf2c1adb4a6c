"""
API Routes - All API endpoints
"""

import shutil
import uuid
from functools import lru_cache
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Header, HTTPException, UploadFile
from loguru import logger

from api.models import (
    ImportRequest,
    ImportResponse,
    NfceUrlRequest,
    ParseTextRequest,
    ProductModel,
    ProductsResponse,
    UrlValidationResponse,
)
from errors import ReceiptError
from receipt_processor import ExtractionResult, ReceiptProcessor
from utils import ensure_directory, sanitize_filename

# Create router
router = APIRouter()


@lru_cache(maxsize=1)
def get_processor() -> ReceiptProcessor:
    """Shared pipeline; the OCR model inside it loads on first use."""
    return ReceiptProcessor()


# ==================== UTILITY FUNCTIONS ====================

def bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Token from an ``Authorization: Bearer <token>`` header, if any"""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def validate_file(file: UploadFile, api_config: dict):
    """Validate uploaded file"""
    if not file.filename:
        raise HTTPException(400, detail="No filename provided")

    allowed = api_config.get("allowed_extensions", [])
    ext = Path(file.filename).suffix.lower()
    if ext not in allowed:
        raise HTTPException(
            400,
            detail=f"Invalid file type: {ext}. Allowed: {', '.join(allowed)}"
        )


def save_upload(file: UploadFile, api_config: dict) -> Path:
    """Save uploaded file under a uuid name and return its path"""
    upload_dir = Path(ensure_directory(api_config.get("upload_dir", "data/uploads")))
    ext = Path(file.filename).suffix.lower()
    file_path = upload_dir / f"{uuid.uuid4()}{ext}"

    with file_path.open("wb") as buffer:
        shutil.copyfileobj(file.file, buffer)

    max_bytes = int(api_config.get("max_file_size_mb", 10)) * 1024 * 1024
    if file_path.stat().st_size > max_bytes:
        file_path.unlink()
        raise HTTPException(413, detail=f"File too large (max: {api_config.get('max_file_size_mb', 10)} MB)")

    return file_path


def to_response(result: ExtractionResult) -> ProductsResponse:
    return ProductsResponse(
        source=result.source,
        source_url=result.source_url,
        product_count=len(result.products),
        products=[ProductModel.from_product(p) for p in result.products],
        text=result.text,
        processing_time_ms=result.processing_time_ms,
    )


# ==================== RECEIPT ENDPOINTS ====================

@router.post("/receipts/scan", response_model=ProductsResponse, tags=["Receipts"])
async def scan_receipt(
    file: UploadFile = File(..., description="Photo of a paper receipt"),
    processor: ReceiptProcessor = Depends(get_processor),
):
    """
    **Scan a paper receipt photo**

    Runs OCR on the image and extracts product lines.

    **Example:**
    ```bash
    curl -X POST http://localhost:8000/api/v1/receipts/scan \\
      -F "file=@cupom.jpg"
    ```
    """
    api_config = processor.config.get("api", {})
    file_path = None
    try:
        validate_file(file, api_config)
        file_path = save_upload(file, api_config)
        logger.info(f"Processing: {sanitize_filename(file.filename)}")

        result = await processor.process_image(str(file_path))
        return to_response(result)

    except (HTTPException, ReceiptError):
        raise
    except Exception as e:
        logger.exception(f"Error processing {sanitize_filename(file.filename)}: {e}")
        raise HTTPException(500, "Erro ao processar a imagem da nota fiscal")
    finally:
        if file_path and file_path.exists():
            file_path.unlink()


@router.post("/receipts/parse-text", response_model=ProductsResponse, tags=["Receipts"])
async def parse_text(
    request: ParseTextRequest,
    processor: ReceiptProcessor = Depends(get_processor),
):
    """
    **Extract products from receipt text**

    Same heuristics as `/receipts/scan`, for text recognised elsewhere.
    """
    return to_response(processor.process_text(request.text))


# ==================== NFCe ENDPOINTS ====================

@router.post("/nfce/validate", response_model=UrlValidationResponse, tags=["NFCe"])
async def validate_nfce_url(
    request: NfceUrlRequest,
    processor: ReceiptProcessor = Depends(get_processor),
):
    """Check that scanned QR content is a fiscal receipt URL."""
    normalized = processor.validate_url(request.qr_code_url)
    return UrlValidationResponse(
        url=normalized.url,
        host=normalized.host,
        access_key=normalized.params.access_key,
        version=normalized.params.version,
        environment=normalized.params.environment,
    )


@router.post("/nfce/consult", response_model=ProductsResponse, tags=["NFCe"])
async def consult_nfce(
    request: NfceUrlRequest,
    processor: ReceiptProcessor = Depends(get_processor),
    token: Optional[str] = Depends(bearer_token),
):
    """
    **Consult an NFCe from its QR code URL**

    With a bearer token (and a configured inventory backend) the backend
    consults the tax authority; otherwise the page is fetched directly.

    **Example:**
    ```bash
    curl -X POST http://localhost:8000/api/v1/nfce/consult \\
      -H "Content-Type: application/json" \\
      -d '{"qrCodeUrl": "https://nfe.sefaz.ba.gov.br/servicos/nfce/qrcode.aspx?p=..."}'
    ```
    """
    result = await processor.consult_url(request.qr_code_url, token)
    return to_response(result)


@router.post("/nfce/scan-qr", response_model=ProductsResponse, tags=["NFCe"])
async def scan_qr(
    file: UploadFile = File(..., description="Photo of the NFCe QR code"),
    processor: ReceiptProcessor = Depends(get_processor),
    token: Optional[str] = Depends(bearer_token),
):
    """Decode the QR code in a photo, then consult the NFCe."""
    api_config = processor.config.get("api", {})
    file_path = None
    try:
        validate_file(file, api_config)
        file_path = save_upload(file, api_config)

        result = await processor.process_qr_image(str(file_path), token)
        return to_response(result)

    except (HTTPException, ReceiptError):
        raise
    except Exception as e:
        logger.exception(f"Error decoding QR in {sanitize_filename(file.filename)}: {e}")
        raise HTTPException(500, "Erro ao processar a imagem do QR Code")
    finally:
        if file_path and file_path.exists():
            file_path.unlink()


# ==================== INVENTORY ENDPOINTS ====================

@router.post("/products/import", response_model=ImportResponse, tags=["Inventory"])
async def import_products(
    request: ImportRequest,
    processor: ReceiptProcessor = Depends(get_processor),
    token: Optional[str] = Depends(bearer_token),
):
    """Create the reviewed products in the inventory backend."""
    if not token:
        raise HTTPException(401, detail="Não autorizado. Verifique seu token de autenticação.")

    products = [p.model_dump() for p in request.products]
    result = await processor.import_products(products, token)
    return ImportResponse(imported=len(products), result=result)
