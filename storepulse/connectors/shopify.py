"""Shopify Admin REST connector.

Docs: https://shopify.dev/docs/api/admin-rest
Orders are paginated with cursor links in the ``Link`` response header,
so every page depends on the previous response.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx

from storepulse.config import settings
from storepulse.connectors.base import (
    LineItem, OrderData, ProductSales, ShopifyAPIError, ShopifyAuthError,
    ShopifyOrder, ShopifyStats, TopProducts,
)

log = logging.getLogger(__name__)

PAGE_LIMIT = 250
TOP_PRODUCTS_LIMIT = 3
UNKNOWN_PRODUCT = "Unknown"


class ShopifyConnector:
    """Storefront connector for one shop and its stored access token."""

    def __init__(self, shop: str, access_token: str, transport: httpx.AsyncBaseTransport | None = None):
        self.shop = shop
        self.access_token = access_token
        self.transport = transport

    @property
    def base_url(self) -> str:
        return f"https://{self.shop}/admin/api/{settings.SHOPIFY_API_VERSION}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            transport=self.transport,
            headers={
                "X-Shopify-Access-Token": self.access_token,
                "Content-Type": "application/json",
            },
        )

    @staticmethod
    def _check(resp: httpx.Response) -> None:
        if resp.is_success:
            return
        body = resp.text[:200]
        log.debug("[shopify] error body: %s", body)
        if resp.status_code == 401:
            raise ShopifyAuthError(resp.status_code, body)
        raise ShopifyAPIError(resp.status_code, body)

    async def _get(self, path: str, params: dict | None = None) -> dict:
        url = f"{self.base_url}/{path}.json"
        log.info("[shopify] GET %s", url)
        log.debug("[shopify] token: %s...", self.access_token[:6] if self.access_token else "MISSING")
        async with self._client() as client:
            resp = await client.get(url, params=params)
        log.info("[shopify] %s -> %d", path, resp.status_code)
        self._check(resp)
        return resp.json()

    async def fetch_shop(self) -> dict:
        """Lightweight identity check. Returns the ``shop`` resource."""
        data = await self._get("shop")
        return data["shop"]

    async def count_orders(self, since: str) -> int:
        data = await self._get("orders/count", {"status": "any", "created_at_min": since})
        return int(data.get("count") or 0)

    async def fetch_all_paid_orders(self, since: str) -> list[ShopifyOrder]:
        """Follow ``rel="next"`` links until exhausted, accumulating every page."""
        orders: list[ShopifyOrder] = []
        url: str | None = f"{self.base_url}/orders.json"
        params: dict | None = {
            "status": "any",
            "financial_status": "paid",
            "created_at_min": since,
            "limit": PAGE_LIMIT,
        }

        async with self._client() as client:
            while url:
                log.info("[shopify] GET %s", url[:120])
                resp = await client.get(url, params=params)
                self._check(resp)
                page = resp.json().get("orders") or []
                orders.extend(parse_order(o) for o in page)

                # The next link already carries the cursor and page size.
                url = resp.links.get("next", {}).get("url")
                params = None
                log.info("[shopify] fetched page: %d orders | total so far: %d", len(page), len(orders))

        log.info("[shopify] pagination complete, total paid orders: %d", len(orders))
        return orders

    async def fetch(self, window_days: int | None = None) -> OrderData:
        """Order count, full paid-order pagination and the derived aggregates."""
        days = window_days or settings.REPORT_WINDOW_DAYS
        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()

        order_count = await self.count_orders(since)
        orders = await self.fetch_all_paid_orders(since)

        stats = compute_shopify_stats(order_count, orders)
        log.info(
            "[shopify] fetched: %d orders | %d paid | revenue: %.2f | AOV: %.2f",
            stats.order_count, stats.sample_size, stats.revenue, stats.avg_order_value,
        )
        return OrderData(shopify_stats=stats, top_products=compute_top_products(orders))


def parse_order(raw: dict) -> ShopifyOrder:
    items = [
        LineItem(
            title=li.get("title") or UNKNOWN_PRODUCT,
            price=float(li.get("price") or 0),
            quantity=int(li.get("quantity") or 1),
        )
        for li in raw.get("line_items") or []
    ]
    return ShopifyOrder(
        external_id=str(raw.get("id", "")),
        total_price=float(raw.get("total_price") or 0),
        line_items=items,
    )


def compute_shopify_stats(order_count: int, orders: list[ShopifyOrder]) -> ShopifyStats:
    """Revenue is the exact sum over every paginated paid order."""
    total = sum((Decimal(str(o.total_price)) for o in orders), Decimal("0"))
    revenue = float(total)
    sample_size = len(orders)
    return ShopifyStats(
        order_count=order_count,
        revenue=revenue,
        avg_order_value=revenue / sample_size if sample_size > 0 else 0.0,
        sample_size=sample_size,
        revenue_is_estimated=False,
    )


def compute_top_products(orders: list[ShopifyOrder], limit: int = TOP_PRODUCTS_LIMIT) -> TopProducts:
    revenue: dict[str, Decimal] = defaultdict(Decimal)
    units: dict[str, int] = defaultdict(int)
    for order in orders:
        for item in order.line_items:
            key = item.title or UNKNOWN_PRODUCT
            revenue[key] += Decimal(str(item.price)) * item.quantity
            units[key] += item.quantity

    products = [ProductSales(title=t, revenue=float(revenue[t]), units=units[t]) for t in revenue]
    return TopProducts(
        by_revenue=sorted(products, key=lambda p: p.revenue, reverse=True)[:limit],
        by_units=sorted(products, key=lambda p: p.units, reverse=True)[:limit],
    )
