from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from storepulse.config import settings
from storepulse.connectors.base import ShopifyStats
from storepulse.dependencies import get_store
from storepulse.main import app
from storepulse.schemas import InsightsEntry, InsightTiles
from storepulse.services import dashboard_service
from storepulse.services.business_context import get_business_context, load_business_context
from storepulse.services.cache import MemoryStore, ShopStore

ROOT = Path(__file__).resolve().parent.parent
CONTEXT_PATH = ROOT / "business_context.json"

SHOP = "hearth-and-wick.myshopify.com"
TOKEN = "shpat_test_token"

TILE_RESPONSE = """### HEALTH CHECK
🟡 Solid month but AOV is slipping.
Revenue: £6,000. Push bundles.

### BIGGEST ISSUE
Diffuser refunds are eating margin.

### QUICK WIN
Add a candle bundle to the cart page this week.

### OPPORTUNITY
Wax melts are climbing. Feature them in email.
"""


class FakeClock:
    """Manually advanced stand-in for ``time.time``."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    monkeypatch.setattr(settings, "BUSINESS_CONTEXT_PATH", str(CONTEXT_PATH))
    monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "")
    monkeypatch.setattr(settings, "GA_PROPERTY_ID", "")
    monkeypatch.setattr(settings, "GA_SERVICE_ACCOUNT_JSON", "")
    monkeypatch.setattr(settings, "META_SYSTEM_USER_TOKEN", "")
    monkeypatch.setattr(settings, "META_AD_ACCOUNT_ID", "")
    monkeypatch.setattr(settings, "REDIS_URL", "")
    get_business_context.cache_clear()
    dashboard_service._shop_locks.clear()
    yield
    get_business_context.cache_clear()


@pytest.fixture
def ai_enabled(monkeypatch):
    monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "sk-ant-test")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return ShopStore(MemoryStore(clock=clock), clock=clock, insights_ttl=86400, order_data_ttl=86400)


@pytest.fixture
def business_context():
    return load_business_context(CONTEXT_PATH)


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_order(order_id, total, items=()):
    return {
        "id": order_id,
        "total_price": f"{total:.2f}",
        "line_items": [{"title": t, "price": f"{p:.2f}", "quantity": q} for t, p, q in items],
    }


def shopify_transport(pages=None, count=None, status_code=200, shop_name="Hearth & Wick", calls=None):
    """Mock Admin API: ``pages`` of orders chained with ``Link`` headers."""
    pages = pages if pages is not None else [[]]
    total = count if count is not None else sum(len(p) for p in pages)

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        if status_code != 200:
            return httpx.Response(status_code, text="[API] Invalid API key or access token")
        path = request.url.path
        if path.endswith("/shop.json"):
            return httpx.Response(200, json={"shop": {"name": shop_name}})
        if path.endswith("/orders/count.json"):
            return httpx.Response(200, json={"count": total})
        if path.endswith("/orders.json"):
            index = int(request.url.params.get("page_info", "0"))
            headers = {}
            if index + 1 < len(pages):
                next_url = f"https://{request.url.host}{path}?limit=250&page_info={index + 1}"
                headers["Link"] = f'<{next_url}>; rel="next"'
            return httpx.Response(200, json={"orders": pages[index]}, headers=headers)
        return httpx.Response(404, json={"errors": "Not Found"})

    return httpx.MockTransport(handler)


def make_entry(generated_at, tiles=None, order_count=120, revenue=6000.0):
    return InsightsEntry(
        tiles=tiles if tiles is not None else InsightTiles(
            health_check="🟢 Strong month.", biggest_issue="Refunds on diffusers.",
            quick_win="Bundle candles.", opportunity="Wax melts trending.",
        ),
        shopify_stats=ShopifyStats(
            order_count=order_count, revenue=revenue,
            avg_order_value=revenue / order_count if order_count else 0.0,
            sample_size=order_count,
        ),
        generated_at=generated_at,
    )
