"""
Supplier HTTP client — paged product listing per category.
Version: 1.0.0

Every request first reserves its estimated cost on the shared RateLimiter
and, when the body carries a cost envelope, reconciles the limiter with the
server's reading. HTTP failures are mapped onto the exception hierarchy so
the executor can turn them into job outcomes.
"""
import logging
import math
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)
from tenacity.wait import wait_base

from supplier_sync.core.config import Settings
from supplier_sync.core.constants.rate_limit import ESTIMATED_COSTS
from supplier_sync.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConnectionTimeoutError,
    ExternalAPIError,
    RateLimitError,
    ValidationError,
)
from supplier_sync.schemas.supplier import SupplierPage, SupplierProduct
from supplier_sync.utils.rate_limiter import RateLimiter, parse_cost_from_response
from supplier_sync.utils.retry_utils import (
    extract_retry_after,
    extract_wait_seconds,
)

logger = logging.getLogger("supplier_client")

SERVICE_NAME = "Supplier"


def _first(raw: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Value of the first key present with a non-empty value."""
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return default


def _to_float(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    # inf and nan cannot be stored as price or stock
    return number if math.isfinite(number) else 0.0


def normalize_product(raw: Dict[str, Any], category: str, index: int) -> SupplierProduct:
    """Map one raw supplier record (either payload format) to a SupplierProduct."""
    sku = _first(raw, "erpCode", "productId", "StokKodu", "sku", "id", "SKU", "stockCode")
    image = raw.get("image")
    images = [image] if image else (_first(raw, "Resimler", "images", default=[]) or [])
    barcode = _first(raw, "Barkod", "barcode")
    description = _first(raw, "description", "Aciklama")

    return SupplierProduct(
        supplier_sku=str(sku) if sku is not None else f"unknown-{category}-{index}",
        title=str(_first(raw, "title", "StokAdi", "name", "UrunAdi", default="Untitled")),
        brand=str(_first(raw, "brandTitle", "Marka", "brand", "Brand", default="")),
        model=str(_first(raw, "model", "Model", default="")),
        category=category,
        price=_to_float(_first(raw, "currentPrice", "Fiyat", "price", "Price", "SatisFiyati", default=0)),
        stock=int(_to_float(_first(raw, "amount", "StokAdet", "stock", "Stock", "Adet", default=0))),
        barcode=str(barcode) if barcode is not None else None,
        description=str(description) if description is not None else None,
        images=[str(i) for i in images] if isinstance(images, list) else [],
        metafields=raw,
    )


class SupplierClient:
    def __init__(
        self,
        settings: Settings,
        rate_limiter: RateLimiter,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_wait: Optional[wait_base] = None,
    ) -> None:
        self._base_url = settings.supplier_api_url
        self._customer_id = settings.supplier_customer_id
        self._api_key = settings.supplier_api_key
        self._category_ids = settings.supplier_category_ids
        self._timeout = settings.supplier_http_timeout
        self._default_retry_after = settings.supplier_default_retry_after
        self._transport_retries = settings.supplier_transport_retries
        self._rate_limiter = rate_limiter
        self._http_client = http_client
        self._retry_wait = retry_wait or wait_random_exponential(min=1, max=20)

    def _build_url(self, category: str) -> str:
        if not (self._base_url and self._customer_id and self._api_key):
            raise ConfigurationError(
                "SUPPLIER_API_URL, SUPPLIER_CUSTOMER_ID and SUPPLIER_API_KEY env vars are required"
            )
        category_id = self._category_ids.get(category)
        if not category_id:
            raise ConfigurationError(f"No supplier category id configured for '{category}'")
        return f"{self._base_url.rstrip('/')}/{self._customer_id}/{self._api_key}/{category_id}"

    async def _send(self, url: str, params: Dict[str, Any]) -> httpx.Response:
        await self._rate_limiter.wait_for_capacity(ESTIMATED_COSTS["getProducts"])
        try:
            if self._http_client is not None:
                return await self._http_client.get(url, params=params)
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.get(url, params=params)
        except httpx.TransportError as e:
            raise ConnectionTimeoutError(f"{SERVICE_NAME} request failed: {e}") from e

    def _raise_for_status(self, resp: httpx.Response) -> None:
        status = resp.status_code
        if status < 400:
            return
        if status == 429:
            retry_after = (
                extract_retry_after(resp)
                or extract_wait_seconds(resp.text)
                or self._default_retry_after
            )
            raise RateLimitError(SERVICE_NAME, retry_after=retry_after)
        if status in (401, 403):
            raise AuthenticationError(f"{SERVICE_NAME} API rejected credentials ({status})")
        if status >= 500:
            raise ExternalAPIError(SERVICE_NAME, resp.text[:200], status_code=status)
        raise ValidationError(f"{SERVICE_NAME} API error {status}: {resp.text[:200]}")

    async def get_products(self, category: str, page: int = 1, limit: int = 100) -> SupplierPage:
        """
        Fetch one page of products for a category.

        Args:
            category: 'tire', 'rim' or 'battery'
            page: 1-based page number
            limit: Page size

        Returns:
            SupplierPage with normalized products and has_more flag

        Raises:
            RateLimitError: 429 from the supplier
            AuthenticationError: 401/403
            ExternalAPIError: 5xx
            ValidationError: other 4xx or an unexpected body
            ConnectionTimeoutError: transport failure after in-call retries
        """
        url = self._build_url(category)
        params = {"page": page, "limit": limit}

        async for attempt in AsyncRetrying(
            wait=self._retry_wait,
            stop=stop_after_attempt(self._transport_retries + 1),
            retry=retry_if_exception_type(ConnectionTimeoutError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                resp = await self._send(url, params)
        self._raise_for_status(resp)

        try:
            body = resp.json()
        except ValueError as e:
            raise ValidationError(f"{SERVICE_NAME} API returned non-JSON body: {e}") from e

        cost_info = parse_cost_from_response(body)
        if cost_info is not None:
            self._rate_limiter.update_from_response(cost_info)

        return self._to_page(body, category, page, limit)

    def _to_page(self, body: Any, category: str, page: int, limit: int) -> SupplierPage:
        server_paged = False
        if isinstance(body, list):
            raw_products: List[Any] = body
        elif isinstance(body, dict):
            raw_products = body.get("products") or body.get("data") or []
            server_paged = "hasMore" in body or "has_more" in body
        else:
            raise ValidationError(f"Unexpected {SERVICE_NAME} payload type: {type(body).__name__}")

        if not isinstance(raw_products, list):
            raise ValidationError(f"Unexpected {SERVICE_NAME} products field: {type(raw_products).__name__}")

        if server_paged:
            records = raw_products
            total = int(body.get("total", len(raw_products)))
            has_more = bool(body.get("hasMore", body.get("has_more")))
            offset = (page - 1) * limit
        else:
            # Unpaged payloads return the whole category; slice locally
            offset = (page - 1) * limit
            records = raw_products[offset:offset + limit]
            total = len(raw_products)
            has_more = offset + limit < total

        products = [
            normalize_product(raw, category, offset + i)
            for i, raw in enumerate(records)
            if isinstance(raw, dict)
        ]
        logger.info(
            f"Fetched {category} page {page}: {len(products)} products (total={total}, has_more={has_more})"
        )
        return SupplierPage(products=products, total=total, page=page, has_more=has_more)
