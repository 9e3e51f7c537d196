from conftest import FakeClock, make_entry
from storepulse.connectors.base import OrderData, ProductSales, ShopifyStats, TopProducts
from storepulse.services.cache import MemoryStore, ShopStore

SHOP = "hearth-and-wick.myshopify.com"
OTHER = "other-shop.myshopify.com"


def _order_data():
    return OrderData(
        shopify_stats=ShopifyStats(order_count=120, revenue=6000.0, avg_order_value=50.0, sample_size=120),
        top_products=TopProducts(by_revenue=[ProductSales("Soy Candle", 2400.0, 96)], by_units=[]),
    )


def test_memory_store_expiry():
    clock = FakeClock()
    backend = MemoryStore(clock=clock)
    backend.set("k", "v", ttl=10)
    backend.set("forever", "v")
    clock.advance(10)
    assert backend.get("k") == "v"
    clock.advance(1)
    assert backend.get("k") is None
    assert backend.get("forever") == "v"


def test_token_roundtrip(store, clock):
    assert store.get_token(SHOP) is None
    store.set_token(SHOP, "shpat_abc")
    token = store.get_token(SHOP)
    assert token.access_token == "shpat_abc"
    assert token.installed_at == clock.now
    assert store.get_token(OTHER) is None


def test_insights_stamped_on_write(store, clock):
    saved = store.set_insights(SHOP, make_entry(generated_at=0))
    assert saved.generated_at == clock.now
    assert store.get_insights(SHOP) == saved


def test_insights_fresh_at_exact_ttl(store, clock):
    store.set_insights(SHOP, make_entry(generated_at=0))
    clock.advance(86400)
    assert store.get_insights(SHOP) is not None


def test_insights_expire_after_ttl(store, clock):
    store.set_insights(SHOP, make_entry(generated_at=0))
    clock.advance(86401)
    assert store.get_insights(SHOP) is None


def test_stale_entry_evicted_even_if_backend_keeps_it(clock):
    # Backend without expiry: the entry's own timestamp still governs.
    store = ShopStore(MemoryStore(clock=clock), clock=clock, insights_ttl=60)
    store.backend.set("sp:insights:" + SHOP, make_entry(generated_at=clock.now - 61).model_dump_json())
    assert store.get_insights(SHOP) is None
    assert store.backend.get("sp:insights:" + SHOP) is None


def test_order_data_roundtrip(store, clock):
    saved = store.set_order_data(SHOP, _order_data())
    assert saved.cached_at == clock.now
    loaded = store.get_order_data(SHOP)
    assert loaded == saved
    assert loaded.top_products.by_revenue[0].title == "Soy Candle"


def test_order_data_expires(store, clock):
    store.set_order_data(SHOP, _order_data())
    clock.advance(86401)
    assert store.get_order_data(SHOP) is None


def test_clear_all_caches_clears_the_pair(store):
    store.set_token(SHOP, "shpat_abc")
    store.set_insights(SHOP, make_entry(generated_at=0))
    store.set_order_data(SHOP, _order_data())
    store.clear_all_caches(SHOP)
    assert store.get_insights(SHOP) is None
    assert store.get_order_data(SHOP) is None
    assert store.get_token(SHOP) is not None


def test_single_clears(store):
    store.set_insights(SHOP, make_entry(generated_at=0))
    store.set_order_data(SHOP, _order_data())
    store.clear_insights(SHOP)
    assert store.get_insights(SHOP) is None
    assert store.get_order_data(SHOP) is not None
    store.clear_order_data(SHOP)
    assert store.get_order_data(SHOP) is None


def test_delete_all_is_per_shop(store):
    for shop in (SHOP, OTHER):
        store.set_token(shop, "shpat_" + shop)
        store.set_insights(shop, make_entry(generated_at=0))
        store.set_order_data(shop, _order_data())

    store.delete_all(SHOP)

    assert store.get_token(SHOP) is None
    assert store.get_insights(SHOP) is None
    assert store.get_order_data(SHOP) is None
    assert store.get_token(OTHER).access_token == "shpat_" + OTHER
    assert store.get_insights(OTHER) is not None
    assert store.get_order_data(OTHER) is not None
