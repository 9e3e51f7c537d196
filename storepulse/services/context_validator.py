"""Compare live numbers against the declared business context.

Every check runs on every call and contributes at most one note. Notes are
advisory text handed to the model, never errors.
"""

import re

from storepulse.schemas import BusinessContext, DataSummary

_AMOUNT = r"(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"
_BAND_RE = re.compile(_AMOUNT + r"\s*-\s*\D*?" + _AMOUNT)
HERO_TOP_N = 5
ROAS_FLOOR_RATIO = 0.5
CPA_ESCALATION_MULTIPLE = 2


def parse_aov_band(band: str) -> tuple[float, float] | None:
    """``"£35-60"`` -> ``(35.0, 60.0)``; ``"£1,000-2,000"`` -> ``(1000.0, 2000.0)``.

    ``None`` when the band is unparseable.
    """
    match = _BAND_RE.search(band or "")
    if not match:
        return None
    low, high = (float(g.replace(",", "")) for g in match.groups())
    return low, high


def _fmt_amount(value: float) -> str:
    return f"{value:g}" if float(value).is_integer() else f"{value:.2f}"


def _check_aov_band(context: BusinessContext, summary: DataSummary) -> str | None:
    bp = context.business_profile
    band = parse_aov_band(bp.aov_band)
    if band is None:
        return None
    low, high = band
    aov = summary.shopify.aov
    sym = bp.currency_symbol
    if aov < low:
        position = "below"
    elif aov > high:
        position = "above"
    else:
        return None
    return (
        f"Your actual AOV this period was {sym}{aov:.2f}, which is {position} your stated "
        f"{bp.aov_band} band. You might want to update business_context.json."
    )


def _check_hero_products(context: BusinessContext, summary: DataSummary) -> str | None:
    heroes = context.business_profile.hero_products
    if not heroes or summary.top_products is None or not summary.top_products.by_revenue:
        return None
    top_titles = {p.title.lower() for p in summary.top_products.by_revenue[:HERO_TOP_N]}
    missing = [h for h in heroes if h.lower() not in top_titles]
    if not missing:
        return None
    plural = "s" if len(missing) > 1 else ""
    return (
        f"Hero product{plural} not in top {HERO_TOP_N} by revenue this period: {', '.join(missing)}. "
        "Either they're underperforming or the hero list in business_context.json needs updating."
    )


def _check_roas_floor(context: BusinessContext, summary: DataSummary) -> str | None:
    goal = context.targets_and_constraints.roas_goal
    if not goal or summary.meta_ads is None or summary.meta_ads.roas is None:
        return None
    actual = summary.meta_ads.roas
    if actual >= goal * ROAS_FLOOR_RATIO:
        return None
    return (
        f"Blended ROAS is {actual}x, below 50% of your {_fmt_amount(goal)}x goal for the full period. "
        f"Consider whether the {_fmt_amount(goal)}x target is realistic or if ad strategy needs reworking."
    )


def _check_cpa_ceiling(context: BusinessContext, summary: DataSummary) -> str | None:
    ceiling = context.targets_and_constraints.cac_ceiling
    meta = summary.meta_ads
    orders = summary.shopify.orders
    if not ceiling or meta is None or meta.spend <= 0 or orders <= 0:
        return None
    cpa = meta.spend / orders
    if cpa <= ceiling:
        return None
    sym = context.business_profile.currency_symbol
    if cpa > ceiling * CPA_ESCALATION_MULTIPLE:
        return (
            f"CPA is {sym}{cpa:.2f}, more than double your {sym}{_fmt_amount(ceiling)} ceiling. "
            "The ceiling may be set too low for this channel, or ad efficiency needs serious attention."
        )
    over_pct = (cpa / ceiling - 1) * 100
    return (
        f"CPA is {sym}{cpa:.2f}, which is {over_pct:.0f}% above your {sym}{_fmt_amount(ceiling)} CAC ceiling. "
        "Worth investigating whether this is a recent spike or a consistent pattern."
    )


_CHECKS = (_check_aov_band, _check_hero_products, _check_roas_floor, _check_cpa_ceiling)


def validate_business_context(context: BusinessContext, summary: DataSummary) -> list[str]:
    notes = []
    for check in _CHECKS:
        note = check(context, summary)
        if note:
            notes.append(note)
    return notes
