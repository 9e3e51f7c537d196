from abc import ABC, abstractmethod
from dataclasses import dataclass, field


# ── Errors ────────────────────────────────────────────────────────────────────

class ConnectorError(Exception):
    """A configured source was called and the remote call failed."""


class ShopifyAPIError(ConnectorError):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"Shopify API error {status_code}: {message}")
        self.status_code = status_code


class ShopifyAuthError(ShopifyAPIError):
    """401 from the storefront: the stored access token is no longer valid."""


class AnalyticsError(ConnectorError):
    pass


class MetaAdsError(ConnectorError):
    pass


# ── Storefront ────────────────────────────────────────────────────────────────

@dataclass
class LineItem:
    title: str
    price: float
    quantity: int = 1


@dataclass
class ShopifyOrder:
    external_id: str
    total_price: float
    line_items: list[LineItem] = field(default_factory=list)


@dataclass
class ShopifyStats:
    order_count: int
    revenue: float
    avg_order_value: float
    sample_size: int
    revenue_is_estimated: bool = False


@dataclass
class ProductSales:
    title: str
    revenue: float = 0.0
    units: int = 0


@dataclass
class TopProducts:
    by_revenue: list[ProductSales] = field(default_factory=list)
    by_units: list[ProductSales] = field(default_factory=list)


@dataclass
class OrderData:
    shopify_stats: ShopifyStats
    top_products: TopProducts
    cached_at: float | None = None


# ── Optional sources ──────────────────────────────────────────────────────────

@dataclass
class AnalyticsData:
    sessions: int = 0
    page_views: int = 0
    users: int = 0
    bounce_rate: float = 0.0


@dataclass
class AdPlatformData:
    """Account-level ad insights. ``revenue`` is the ad-attributed
    conversion value reported by the ad platform, not storefront revenue."""

    spend: float = 0.0
    impressions: int = 0
    clicks: int = 0
    purchases: int = 0
    revenue: float = 0.0

    @property
    def roas(self) -> float | None:
        if self.spend > 0:
            return self.revenue / self.spend
        return None


class SourceConnector(ABC):
    """An optional data source.

    ``fetch`` returns ``None`` when the source is not configured and raises
    a ``ConnectorError`` when it is configured but the remote call fails.
    """

    name: str = "source"

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the static configuration for this source is present."""

    @abstractmethod
    async def fetch(self):
        """Fetch the trailing-window metrics for this source."""
