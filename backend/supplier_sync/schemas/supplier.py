"""
Supplier schemas — normalized supplier products and page envelopes.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SupplierProduct(BaseModel):
    """A product as returned by the supplier API, after normalization."""
    supplier_sku: str
    title: str = "Untitled"
    brand: str = ""
    model: str = ""
    category: str
    price: float = 0.0
    stock: int = 0
    barcode: Optional[str] = None
    description: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    metafields: Dict[str, Any] = Field(default_factory=dict)


class SupplierPage(BaseModel):
    """One page of supplier products."""
    products: List[SupplierProduct]
    total: int
    page: int
    has_more: bool


class UpsertCounts(BaseModel):
    """Result of persisting one batch of supplier products."""
    created: int = 0
    updated: int = 0
    unchanged: int = 0
