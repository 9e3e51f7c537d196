"""Normalise connector outputs into the canonical DataSummary.

Pure and deterministic: the summary is embedded verbatim in prompts, so the
same inputs must always produce the same summary.
"""

from storepulse.connectors.base import AdPlatformData, AnalyticsData, ProductSales, ShopifyStats, TopProducts
from storepulse.schemas import (
    DataSummary, GA4Summary, MetaAdsSummary, ProductLine, ShopifySummary, TopProductsSummary,
)

DEFAULT_PERIOD = "Last 30 days"


def _ratio(numerator: float, denominator: float, scale: float = 1.0) -> float | None:
    if denominator > 0:
        return round(numerator / denominator * scale, 2)
    return None


def _product_line(p: ProductSales) -> ProductLine:
    return ProductLine(title=p.title, revenue=round(p.revenue, 2), units=p.units)


def build_data_summary(
    shopify_stats: ShopifyStats,
    ga_data: AnalyticsData | None,
    meta_ads_data: AdPlatformData | None,
    top_products: TopProducts | None,
    period: str = DEFAULT_PERIOD,
) -> DataSummary:
    shopify = ShopifySummary(
        orders=shopify_stats.order_count,
        revenue=round(shopify_stats.revenue, 2),
        revenue_is_estimated=shopify_stats.revenue_is_estimated,
        aov=round(shopify_stats.avg_order_value, 2),
        sample_size=shopify_stats.sample_size,
    )

    ga4 = None
    if ga_data is not None:
        ga4 = GA4Summary(
            sessions=ga_data.sessions,
            bounce_rate=ga_data.bounce_rate,
            users=ga_data.users,
            page_views=ga_data.page_views,
        )

    meta_ads = None
    if meta_ads_data is not None:
        m = meta_ads_data
        meta_ads = MetaAdsSummary(
            spend=round(m.spend, 2),
            impressions=m.impressions,
            clicks=m.clicks,
            purchases=m.purchases,
            revenue=round(m.revenue, 2),
            roas=_ratio(m.revenue, m.spend),
            cpc=_ratio(m.spend, m.clicks),
            ctr=_ratio(m.clicks, m.impressions, scale=100),
        )

    products = None
    if top_products is not None:
        products = TopProductsSummary(
            by_revenue=[_product_line(p) for p in top_products.by_revenue],
            by_units=[_product_line(p) for p in top_products.by_units],
        )

    return DataSummary(
        period=period,
        shopify=shopify,
        ga4=ga4,
        meta_ads=meta_ads,
        top_products=products,
    )
