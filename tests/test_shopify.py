import asyncio

import pytest

from conftest import make_order, shopify_transport
from storepulse.connectors.base import LineItem, ShopifyAPIError, ShopifyAuthError, ShopifyOrder
from storepulse.connectors.shopify import (
    ShopifyConnector, compute_shopify_stats, compute_top_products, parse_order,
)

SHOP = "hearth-and-wick.myshopify.com"


def _connector(transport):
    return ShopifyConnector(SHOP, "shpat_test", transport=transport)


def test_parse_order_defaults():
    order = parse_order({"id": 7, "total_price": "12.50", "line_items": [{"price": "12.50"}]})
    assert order.external_id == "7"
    assert order.total_price == 12.5
    assert order.line_items == [LineItem(title="Unknown", price=12.5, quantity=1)]


def test_stats_are_exact_over_all_orders():
    orders = [ShopifyOrder(external_id=str(i), total_price=50.0) for i in range(120)]
    stats = compute_shopify_stats(120, orders)
    assert stats.order_count == 120
    assert stats.sample_size == 120
    assert stats.revenue == 6000.0
    assert stats.avg_order_value == 50.0
    assert stats.revenue_is_estimated is False


def test_stats_with_no_paid_orders():
    stats = compute_shopify_stats(4, [])
    assert stats.revenue == 0.0
    assert stats.avg_order_value == 0.0
    assert stats.sample_size == 0


def test_top_products_aggregates_across_orders():
    orders = [
        ShopifyOrder("1", 60.0, [LineItem("Soy Candle", 20.0, 3)]),
        ShopifyOrder("2", 45.0, [LineItem("Diffuser", 45.0, 1)]),
        ShopifyOrder("3", 28.0, [LineItem("Soy Candle", 20.0, 1), LineItem("Wax Melts", 4.0, 2)]),
        ShopifyOrder("4", 10.0, [LineItem("Matches", 1.0, 10)]),
    ]
    top = compute_top_products(orders)
    assert [p.title for p in top.by_revenue] == ["Soy Candle", "Diffuser", "Matches"]
    assert top.by_revenue[0].revenue == 80.0
    assert top.by_revenue[0].units == 4
    assert [p.title for p in top.by_units] == ["Matches", "Soy Candle", "Wax Melts"]


def test_fetch_follows_every_next_link():
    pages = [
        [make_order(i, 50.0, [("Soy Candle", 25.0, 2)]) for i in range(250)],
        [make_order(250 + i, 50.0, [("Soy Candle", 25.0, 2)]) for i in range(250)],
        [make_order(500 + i, 50.0, [("Diffuser", 50.0, 1)]) for i in range(20)],
    ]
    calls = []
    data = asyncio.run(_connector(shopify_transport(pages, count=530, calls=calls)).fetch())

    stats = data.shopify_stats
    assert stats.order_count == 530
    assert stats.sample_size == 520
    assert stats.revenue == 26000.0
    assert stats.avg_order_value == 50.0
    assert data.top_products.by_revenue[0].title == "Soy Candle"
    assert data.top_products.by_revenue[0].units == 1000

    order_calls = [r for r in calls if r.url.path.endswith("/orders.json")]
    assert len(order_calls) == 3
    first = order_calls[0].url.params
    assert first["financial_status"] == "paid"
    assert first["limit"] == "250"
    # Follow-up pages use the link as given, without the original filters.
    assert "financial_status" not in order_calls[1].url.params
    assert order_calls[2].url.params["page_info"] == "2"


def test_fetch_sends_access_token_header():
    calls = []
    asyncio.run(_connector(shopify_transport(calls=calls)).fetch_shop())
    assert calls[0].headers["X-Shopify-Access-Token"] == "shpat_test"
    assert calls[0].url.path == "/admin/api/2024-01/shop.json"


def test_401_maps_to_auth_error():
    with pytest.raises(ShopifyAuthError) as exc:
        asyncio.run(_connector(shopify_transport(status_code=401)).fetch_shop())
    assert exc.value.status_code == 401


def test_other_errors_map_to_api_error():
    with pytest.raises(ShopifyAPIError) as exc:
        asyncio.run(_connector(shopify_transport(status_code=503)).fetch())
    assert not isinstance(exc.value, ShopifyAuthError)
    assert "503" in str(exc.value)
