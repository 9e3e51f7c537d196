from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator

from storepulse.connectors.base import AdPlatformData, AnalyticsData, ShopifyStats


# ── Business context ──────────────────────────────────────────────────────────

_FROZEN = {"frozen": True, "extra": "ignore"}


class BusinessProfile(BaseModel):
    store_name: str
    industry: str
    business_stage: str
    aov_band: str
    margin_model: str
    currency: str = "GBP"
    currency_symbol: str = "£"
    hero_products: tuple[str, ...] = ()

    model_config = _FROZEN


class MetricContract(BaseModel):
    definition: str
    warning: str = ""

    model_config = _FROZEN


class DataContracts(BaseModel):
    revenue: MetricContract
    orders: MetricContract
    sessions: MetricContract
    conversion_rate: MetricContract
    roas: MetricContract

    model_config = _FROZEN


class Rule(BaseModel):
    rule: str
    threshold: Optional[float] = None
    message: str = ""

    model_config = _FROZEN

    @field_validator("rule")
    @classmethod
    def rule_not_blank(cls, v):
        if not v.strip():
            raise ValueError("rule text must not be empty")
        return v


class AttributionRules(BaseModel):
    discrepancy_flag: Rule

    model_config = _FROZEN


class TrustAndSafetyRails(BaseModel):
    minimum_purchases: Rule
    minimum_trend_days: Rule
    session_drop_flag: Rule
    revenue_gap_flag: Rule

    model_config = _FROZEN


class Targets(BaseModel):
    roas_goal: Optional[float] = None
    cac_ceiling: Optional[float] = None
    mer_goal: Optional[float] = None

    model_config = _FROZEN


class BusinessContext(BaseModel):
    business_profile: BusinessProfile
    data_contracts: DataContracts
    attribution_rules: AttributionRules
    trust_and_safety_rails: TrustAndSafetyRails
    targets_and_constraints: Targets = Targets()

    model_config = _FROZEN


# ── Tenant credentials ────────────────────────────────────────────────────────

class ShopToken(BaseModel):
    access_token: str
    installed_at: float


# ── Data summary ──────────────────────────────────────────────────────────────

class ShopifySummary(BaseModel):
    orders: int
    revenue: float
    revenue_is_estimated: bool
    aov: float
    sample_size: int


class GA4Summary(BaseModel):
    sessions: int
    bounce_rate: float
    users: int
    page_views: int


class MetaAdsSummary(BaseModel):
    spend: float
    impressions: int
    clicks: int
    purchases: int
    revenue: float
    roas: Optional[float] = None
    cpc: Optional[float] = None
    ctr: Optional[float] = None


class ProductLine(BaseModel):
    title: str
    revenue: float
    units: int


class TopProductsSummary(BaseModel):
    by_revenue: list[ProductLine]
    by_units: list[ProductLine]


class DataSummary(BaseModel):
    """The only shape the prompt builder and context validator read."""

    period: str
    shopify: ShopifySummary
    ga4: Optional[GA4Summary] = None
    meta_ads: Optional[MetaAdsSummary] = None
    top_products: Optional[TopProductsSummary] = None


# ── Insight tiles ─────────────────────────────────────────────────────────────

class Severity(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class InsightTiles(BaseModel):
    health_check: str = ""
    biggest_issue: str = ""
    quick_win: str = ""
    opportunity: str = ""
    ad_performance: str = ""
    health_severity: Severity = Severity.HEALTHY
    ad_severity: Severity = Severity.HEALTHY

    @property
    def has_content(self) -> bool:
        return any((
            self.health_check, self.biggest_issue, self.quick_win,
            self.opportunity, self.ad_performance,
        ))


class InsightsEntry(BaseModel):
    """One generation cycle: the tiles plus the source data behind them."""

    tiles: Optional[InsightTiles] = None
    shopify_stats: ShopifyStats
    ga_data: Optional[AnalyticsData] = None
    meta_ads_data: Optional[AdPlatformData] = None
    generated_at: float

    @property
    def has_tiles(self) -> bool:
        return self.tiles is not None and self.tiles.has_content


class InsightsResponse(BaseModel):
    shopify_stats: ShopifyStats
    ga_data: Optional[AnalyticsData] = None
    meta_ads_data: Optional[AdPlatformData] = None
    tiles: Optional[InsightTiles] = None
    generated_at: float
