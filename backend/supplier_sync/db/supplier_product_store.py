"""
Supplier product store — persists fetched supplier products.

Each batch is classified against the stored rows:
- new products are inserted
- price/stock changes update the row and stamp last_*_change_at
- unchanged products only get last_seen_at refreshed
Every insert or change also writes a supplier_product_history row.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from supplier_sync.core.constants.jobs import (
    SUPPLIER_PRODUCT_HISTORY_TABLE,
    SUPPLIER_PRODUCTS_TABLE,
)
from supplier_sync.db.base_store import BaseStore
from supplier_sync.schemas.supplier import SupplierProduct, UpsertCounts
from supplier_sync.utils.change_detection import (
    CHANGE_BOTH,
    CHANGE_NEW,
    CHANGE_PRICE,
    CHANGE_STOCK,
    detect_product_change,
    to_minor_units,
)

logger = logging.getLogger("supplier_product_store")


class SupplierProductStore(BaseStore):
    """Store for the supplier_products and supplier_product_history tables."""

    async def upsert_products(
        self,
        products: List[SupplierProduct],
        job_id: int,
        category: str,
    ) -> UpsertCounts:
        """
        Insert or update a batch of products for one category.

        Args:
            products: Normalized products from one supplier page
            job_id: Fetch job the batch belongs to (recorded on history rows)
            category: Product category of the batch

        Returns:
            Counts of created, updated and unchanged products
        """
        if not products:
            return UpsertCounts()

        # Duplicate SKUs within a page keep the last occurrence
        by_sku: Dict[str, SupplierProduct] = {p.supplier_sku: p for p in products}
        existing_rows = await self._select_in(
            SUPPLIER_PRODUCTS_TABLE,
            "supplier_sku",
            list(by_sku.keys()),
            columns="supplier_sku, current_price, current_stock",
        )
        existing = {row["supplier_sku"]: row for row in existing_rows}

        now = datetime.now(timezone.utc).isoformat()
        new_rows: List[Dict[str, Any]] = []
        history_rows: List[Dict[str, Any]] = []
        unchanged_skus: List[str] = []
        updated = 0

        for sku, product in by_sku.items():
            row = existing.get(sku)
            change = detect_product_change(row, product)
            new_price = to_minor_units(product.price)

            if change is None:
                unchanged_skus.append(sku)
                continue

            if change == CHANGE_NEW:
                new_rows.append(self._build_product_row(product, category, now))
                history_rows.append({
                    "supplier_sku": sku,
                    "change_type": CHANGE_NEW,
                    "new_price": new_price,
                    "new_stock": product.stock,
                    "fetch_job_id": job_id,
                })
                continue

            payload = self._build_product_row(product, category, now)
            payload.pop("first_seen_at", None)
            if change in (CHANGE_PRICE, CHANGE_BOTH):
                payload["last_price_change_at"] = now
            if change in (CHANGE_STOCK, CHANGE_BOTH):
                payload["last_stock_change_at"] = now
            await self._update(SUPPLIER_PRODUCTS_TABLE, {"supplier_sku": sku}, payload)
            updated += 1

            history_rows.append({
                "supplier_sku": sku,
                "change_type": change,
                "old_price": row.get("current_price"),
                "old_stock": row.get("current_stock"),
                "new_price": new_price,
                "new_stock": product.stock,
                "fetch_job_id": job_id,
            })

        await self._insert(SUPPLIER_PRODUCTS_TABLE, new_rows)
        await self._update_in(
            SUPPLIER_PRODUCTS_TABLE,
            "supplier_sku",
            unchanged_skus,
            {"last_seen_at": now, "is_active": True},
        )
        await self._insert(SUPPLIER_PRODUCT_HISTORY_TABLE, history_rows)

        counts = UpsertCounts(
            created=len(new_rows),
            updated=updated,
            unchanged=len(unchanged_skus),
        )
        logger.info(
            f"Upserted {category} batch for job {job_id}: "
            f"created={counts.created} updated={counts.updated} unchanged={counts.unchanged}"
        )
        return counts

    @staticmethod
    def _build_product_row(product: SupplierProduct, category: str, now: str) -> Dict[str, Any]:
        return {
            "supplier_sku": product.supplier_sku,
            "category": category,
            "title": product.title,
            "brand": product.brand,
            "model": product.model,
            "current_price": to_minor_units(product.price),
            "current_stock": product.stock,
            "barcode": product.barcode,
            "description": product.description,
            "images": product.images,
            "metafields": product.metafields,
            "is_active": True,
            "first_seen_at": now,
            "last_seen_at": now,
            "updated_at": now,
        }
