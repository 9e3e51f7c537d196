"""Dashboard orchestration.

Single entry point for producing a shop's insights: cache lookup, concurrent
fan-out to the sources on a miss, tile generation and cache population.
"""

import asyncio
import logging
from collections import defaultdict

from storepulse.connectors import ShopifyConnector, get_ad_connector, get_analytics_connector
from storepulse.connectors.base import OrderData, SourceConnector
from storepulse.schemas import InsightsEntry
from storepulse.services.cache import ShopStore
from storepulse.services.insights import Invoke, generate_tile_insights

log = logging.getLogger(__name__)

# One regeneration at a time per shop; waiters reuse the fresh entry.
_shop_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)


async def get_order_data(
    shop: str,
    access_token: str,
    store: ShopStore,
    connector: ShopifyConnector | None = None,
) -> OrderData:
    cached = store.get_order_data(shop)
    if cached:
        log.info("[orders] using cached order data from %s", cached.cached_at)
        return cached

    log.info("[orders] cache miss, paginating all paid orders for %s", shop)
    connector = connector or ShopifyConnector(shop, access_token)
    data = await connector.fetch()
    return store.set_order_data(shop, data)


async def _fetch_optional(source: SourceConnector | None):
    if source is None:
        return None
    try:
        return await source.fetch()
    except Exception as e:
        log.warning("[dashboard] %s failed, treating as not connected: %s", source.name, e)
        return None


async def fetch_optional_sources(analytics: SourceConnector | None, ads: SourceConnector | None):
    """Analytics and ad data, each downgraded to ``None`` on failure."""
    return await asyncio.gather(_fetch_optional(analytics), _fetch_optional(ads))


async def build_insights(
    shop: str,
    access_token: str,
    store: ShopStore,
    *,
    force_refresh: bool = False,
    shopify: ShopifyConnector | None = None,
    analytics: SourceConnector | None = None,
    ads: SourceConnector | None = None,
    invoke: Invoke | None = None,
) -> InsightsEntry:
    """Return the shop's insights, regenerating on a miss or forced refresh.

    Storefront errors (including ``ShopifyAuthError``) and model errors
    propagate. The entry is cached only when at least one tile has content.
    """
    requested_at = store.clock()
    if force_refresh:
        store.clear_all_caches(shop)
    else:
        cached = store.get_insights(shop)
        if cached:
            log.info("[dashboard] cache hit from %s", cached.generated_at)
            return cached

    async with _shop_locks[shop]:
        # Another request may have finished regenerating while we waited.
        cached = store.get_insights(shop)
        if cached and cached.generated_at >= requested_at:
            log.info("[dashboard] reusing insights generated by a concurrent request")
            return cached

        analytics = analytics if analytics is not None else get_analytics_connector()
        ads = ads if ads is not None else get_ad_connector()

        order_data, (ga_data, meta_ads_data) = await asyncio.gather(
            get_order_data(shop, access_token, store, connector=shopify),
            fetch_optional_sources(analytics, ads),
        )

        tiles = await generate_tile_insights(
            order_data.shopify_stats, ga_data, meta_ads_data, order_data.top_products,
            invoke=invoke,
        )
        entry = InsightsEntry(
            tiles=tiles,
            shopify_stats=order_data.shopify_stats,
            ga_data=ga_data,
            meta_ads_data=meta_ads_data,
            generated_at=store.clock(),
        )
        if entry.has_tiles:
            entry = store.set_insights(shop, entry)
        else:
            log.warning("[dashboard] no tiles populated for %s, not caching", shop)
        return entry


def invalidate_shop(shop: str, store: ShopStore) -> None:
    """Credential is no longer valid: drop the token and both caches."""
    store.delete_all(shop)
