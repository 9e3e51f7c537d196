"""Insight tile generator.

Builds the data summary and prompts, makes exactly one model call, and
parses the free-text answer into the fixed tile schema. The parser accepts
sections that come back reordered, missing or padded with whitespace.
"""

import logging
import re
from typing import Awaitable, Callable

from storepulse.config import settings
from storepulse.connectors.base import AdPlatformData, AnalyticsData, ShopifyStats, TopProducts
from storepulse.schemas import BusinessContext, InsightTiles, Severity
from storepulse.services.business_context import get_business_context
from storepulse.services.context_validator import validate_business_context
from storepulse.services.data_summary import build_data_summary
from storepulse.services.llm import AnthropicClient
from storepulse.services.prompts import SECTION_MARKER, build_system_prompt, build_user_prompt

log = logging.getLogger(__name__)

Invoke = Callable[[str, str, int], Awaitable[str]]

MAX_TOKENS_WITH_ADS = 1000
MAX_TOKENS_WITHOUT_ADS = 800

ROAS_CRITICAL_BELOW = 1.5
ROAS_WARNING_UP_TO = 2.5

# Highest severity first: the first marker found wins.
HEALTH_MARKERS = (
    ("🔴", Severity.CRITICAL),
    ("🟡", Severity.WARNING),
)

_SECTION_SPLIT = re.compile(re.escape(SECTION_MARKER) + r"\s*")


def classify_section(header: str) -> str | None:
    h = header.upper()
    if "HEALTH" in h:
        return "health_check"
    if "ISSUE" in h:
        return "biggest_issue"
    if "QUICK" in h or "WIN" in h:
        return "quick_win"
    if "OPPORTUN" in h:
        return "opportunity"
    if "AD" in h and "PERF" in h:
        return "ad_performance"
    return None


def parse_tiles(text: str) -> dict[str, str]:
    """Split on section headers and map each section to a tile body.

    Unrecognised and empty sections are dropped. Tiles with no section
    stay as empty strings.
    """
    tiles = {
        "health_check": "",
        "biggest_issue": "",
        "quick_win": "",
        "opportunity": "",
        "ad_performance": "",
    }
    for section in _SECTION_SPLIT.split(text or ""):
        section = section.strip()
        if not section:
            continue
        header, _, body = section.partition("\n")
        key = classify_section(header)
        if key:
            tiles[key] = body.strip()
    return tiles


def health_severity(health_text: str) -> Severity:
    for marker, severity in HEALTH_MARKERS:
        if marker in health_text:
            return severity
    return Severity.HEALTHY


def ad_severity(meta_ads_data: AdPlatformData | None) -> Severity:
    """Derived from the connector's own numbers, never from model text."""
    if meta_ads_data is None or meta_ads_data.spend <= 0:
        return Severity.HEALTHY
    roas = meta_ads_data.revenue / meta_ads_data.spend
    if roas < ROAS_CRITICAL_BELOW:
        return Severity.CRITICAL
    if roas <= ROAS_WARNING_UP_TO:
        return Severity.WARNING
    return Severity.HEALTHY


async def generate_tile_insights(
    shopify_stats: ShopifyStats,
    ga_data: AnalyticsData | None,
    meta_ads_data: AdPlatformData | None,
    top_products: TopProducts | None,
    *,
    context: BusinessContext | None = None,
    invoke: Invoke | None = None,
) -> InsightTiles | None:
    """Returns ``None`` without calling out when no model key is configured.

    Errors from the model call propagate to the caller.
    """
    if not settings.ANTHROPIC_API_KEY:
        log.info("[insights] ANTHROPIC_API_KEY not set")
        return None

    context = context or get_business_context()
    if invoke is None:
        invoke = AnthropicClient(settings.ANTHROPIC_API_KEY).invoke

    has_ad_data = meta_ads_data is not None
    summary = build_data_summary(shopify_stats, ga_data, meta_ads_data, top_products)
    notes = validate_business_context(context, summary)
    if notes:
        log.info("[insights] context validation notes: %s", notes)

    system_prompt = build_system_prompt(context)
    user_prompt = build_user_prompt(summary, has_ad_data, notes, context.business_profile.currency_symbol)
    max_tokens = MAX_TOKENS_WITH_ADS if has_ad_data else MAX_TOKENS_WITHOUT_ADS

    log.info("[insights] sending tile prompt (%d tiles, max_tokens=%d)", 5 if has_ad_data else 4, max_tokens)
    text = await invoke(system_prompt, user_prompt, max_tokens)
    log.info("[insights] received tile response, length: %d", len(text))

    parsed = parse_tiles(text)
    if not has_ad_data:
        parsed["ad_performance"] = ""

    tiles = InsightTiles(
        **parsed,
        health_severity=health_severity(parsed["health_check"]),
        ad_severity=ad_severity(meta_ads_data),
    )
    log.info("[insights] parsed tiles: %s", {k: len(v) for k, v in parsed.items()})
    return tiles
