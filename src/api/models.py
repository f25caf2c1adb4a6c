"""
API Models — Request and Response schemas
Using Pydantic for automatic validation and documentation
"""

from datetime import date
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from extractor.models import ExtractedProduct


# ─── Product Models ───────────────────────────────────────────────────────────

class ProductModel(BaseModel):
    """One extracted (or reviewed) product."""
    name: str                        = Field(...,      description="Product name (max 100 chars when extracted)")
    description: str                 = Field("",       description="Extra text gathered from continuation lines")
    price: float                     = Field(...,      description="Unit price in BRL")
    stock: int                       = Field(1,        description="Quantity purchased")
    expiration_date: Optional[date]  = Field(None,     description="Expiration date, set during review")
    category: Optional[str]          = Field("Outros", description="Guessed category name")
    id_category: Optional[int]       = Field(None,     description="Backend category id, when resolved")

    @classmethod
    def from_product(cls, product: ExtractedProduct) -> "ProductModel":
        return cls(
            name=product.name,
            description=product.description,
            price=round(float(product.price), 2),
            stock=product.stock,
            expiration_date=product.expiration_date,
            category=product.category,
            id_category=product.id_category,
        )


class ProductsResponse(BaseModel):
    """Products extracted from a receipt photo, OCR text or an NFCe."""
    status: str                      = Field("success", description="Response status")
    source: str                      = Field(...,       description="'ocr' or 'nfce'")
    source_url: Optional[str]        = Field(None,      description="Normalised NFCe URL that was consulted")
    product_count: int               = Field(...,       description="Number of products")
    products: List[ProductModel]     = Field(...,       description="Extracted products, in receipt order")
    text: Optional[str]              = Field(None,      description="Recognised text (OCR sources only)")
    processing_time_ms: int          = Field(0,         description="OCR time in milliseconds")

    class Config:
        json_schema_extra = {
            "example": {
                "status": "success",
                "source": "ocr",
                "product_count": 2,
                "products": [
                    {"name": "Leite Integral 1L", "description": "", "price": 4.5,
                     "stock": 1, "category": "Alimentos"},
                    {"name": "Sabão em pó", "description": "", "price": 12.9,
                     "stock": 2, "category": "Limpeza"},
                ],
                "processing_time_ms": 1250,
            }
        }


# ─── Requests ─────────────────────────────────────────────────────────────────

class ParseTextRequest(BaseModel):
    text: str = Field(..., description="Raw receipt text, one row per line")


class NfceUrlRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    qr_code_url: str = Field(..., alias="qrCodeUrl", description="Scanned QR code content")


class ImportRequest(BaseModel):
    products: List[ProductModel] = Field(..., description="Reviewed products to create")


# ─── NFCe / Import responses ──────────────────────────────────────────────────

class UrlValidationResponse(BaseModel):
    valid: bool        = Field(True, description="Always true; invalid URLs return an error")
    url: str           = Field(...,  description="Normalised URL")
    host: str          = Field(...,  description="Tax-authority host")
    access_key: str    = Field(...,  description="Fiscal document key (44 digits)")
    version: str       = Field(...,  description="QR code version field")
    environment: str   = Field(...,  description="1 = production, 2 = homologation")


class ImportResponse(BaseModel):
    status: str        = Field("success", description="Response status")
    imported: int      = Field(...,       description="Number of products sent")
    result: Any        = Field(None,      description="Backend response body")


# ─── Health & Error Models ────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    """Health check response."""
    status: str  = Field("healthy",                 description="Health status")
    service: str = Field("receipt-nfce-extractor",  description="Service name")
    version: str = Field("1.0.0",                   description="API version")


class ErrorResponse(BaseModel):
    """Error response."""
    status: str            = Field("error", description="Response status")
    error: str             = Field(...,     description="Error type")
    message: str           = Field(...,     description="Error message, shown to the user as-is")
    reason: Optional[str]  = Field(None,    description="Fetch failure reason, for RemoteFetchFailed")
