"""
ExtractedProduct, the only record produced by the extractors.

Created per extraction call, handed to the review step, never persisted here.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

MAX_NAME_LENGTH = 100
DEFAULT_CATEGORY = "Outros"
UNNAMED_PRODUCT = "Produto sem nome"


@dataclass
class ExtractedProduct:
    """A purchased line item recovered from a receipt."""

    name: str
    price: Decimal
    description: str = ""
    stock: int = 1
    expiration_date: Optional[date] = None
    category: Optional[str] = DEFAULT_CATEGORY
    id_category: Optional[int] = field(default=None, repr=False)

    def __post_init__(self):
        # Truncate after trimming so an over-long name keeps exactly MAX_NAME_LENGTH chars
        name = (self.name or "").strip()
        self.name = name[:MAX_NAME_LENGTH] if name else UNNAMED_PRODUCT
        self.description = (self.description or "").strip()
        if not isinstance(self.price, Decimal):
            self.price = Decimal(str(self.price))

    @property
    def is_valid(self) -> bool:
        return self.price > 0 and bool(self.name)

    def to_dict(self) -> Dict[str, Any]:
        """Backend JSON shape."""
        data = {
            "name": self.name,
            "description": self.description,
            "price": round(float(self.price), 2),
            "stock": self.stock,
            "expiration_date": self.expiration_date.isoformat() if self.expiration_date else None,
            "category": self.category,
        }
        if self.id_category is not None:
            data["id_category"] = self.id_category
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["ExtractedProduct"]:
        """
        Build a product from a backend/JSON dict.

        Returns None when the dict cannot satisfy the product invariant
        (positive price, a name).
        """
        name = str(data.get("name") or "").strip()
        try:
            price = Decimal(str(data.get("price")))
        except (InvalidOperation, ValueError, TypeError):
            return None
        if not name or not price.is_finite() or price <= 0:
            return None

        try:
            stock = int(data.get("stock") or 1)
        except (ValueError, TypeError):
            stock = 1

        expiration = data.get("expiration_date")
        if isinstance(expiration, str) and expiration.strip():
            try:
                expiration = date.fromisoformat(expiration.strip()[:10])
            except ValueError:
                expiration = None
        elif not isinstance(expiration, date):
            expiration = None

        return cls(
            name=name,
            price=price,
            description=str(data.get("description") or ""),
            stock=stock,
            expiration_date=expiration,
            category=data.get("category") or DEFAULT_CATEGORY,
        )
