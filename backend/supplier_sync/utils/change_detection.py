"""
Change detection — classify a fetched supplier product against its stored row.
Version: 1.0.0
"""
import math
from typing import Any, Dict, Optional

from supplier_sync.schemas.supplier import SupplierProduct

CHANGE_NEW = "new"
CHANGE_PRICE = "price"
CHANGE_STOCK = "stock"
CHANGE_BOTH = "both"


def to_minor_units(price: float) -> int:
    """Convert a decimal price to integer minor units (cents / kuruş)."""
    if not price or not math.isfinite(price):
        return 0
    return int(round(price * 100))


def detect_product_change(
    existing_row: Optional[Dict[str, Any]], product: SupplierProduct,
) -> Optional[str]:
    """
    Determine what changed between the stored row and the fetched product.

    Returns:
        'new', 'price', 'stock', 'both', or None when nothing relevant changed
    """
    if existing_row is None:
        return CHANGE_NEW

    price_changed = existing_row.get("current_price") != to_minor_units(product.price)
    stock_changed = existing_row.get("current_stock") != product.stock

    if price_changed and stock_changed:
        return CHANGE_BOTH
    if price_changed:
        return CHANGE_PRICE
    if stock_changed:
        return CHANGE_STOCK
    return None
