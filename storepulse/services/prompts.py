"""Prompt builders for the insight tiles.

``build_system_prompt`` carries the persona, business context, canonical
metric definitions and safety rails. ``build_user_prompt`` carries the data
summary and the per-tile instructions. Both are deterministic.
"""

from storepulse.schemas import BusinessContext, DataSummary

SECTION_MARKER = "###"

TILE_PROMPTS = {
    "HEALTH_CHECK": f"""{SECTION_MARKER} HEALTH CHECK
Start with EXACTLY one status emoji: 🟢 (healthy), 🟡 (needs attention), or 🔴 (critical).
One-line verdict. Then 3 key metrics on new lines: Revenue, Orders, AOV, each with brief context.
Every metric must include an improvement action. 40 words max total.""",

    "BIGGEST_ISSUE": f"""{SECTION_MARKER} BIGGEST ISSUE
The #1 thing costing money right now. Name the specific problem, the {{sym}} impact, and one fix. Be blunt. 30 words max.""",

    "QUICK_WIN": f"""{SECTION_MARKER} QUICK WIN
One specific action for THIS WEEK. Name the product/page/campaign. What to do and expected {{sym}} impact. 30 words max.""",

    "OPPORTUNITY": f"""{SECTION_MARKER} OPPORTUNITY
One growth pattern from the data. Name specific products. Recommendation with realistic {{sym}} potential over 30 days. 30 words max.""",

    "AD_PERFORMANCE": f"""{SECTION_MARKER} AD PERFORMANCE
Start with EXACTLY one status emoji: 🟢 (ROAS >2.5), 🟡 (ROAS 1.5-2.5), or 🔴 (ROAS <1.5).
ROAS value, verdict, and one specific optimization. Name what to change. 30 words max.""",
}

CORE_TILES = ("HEALTH_CHECK", "BIGGEST_ISSUE", "QUICK_WIN", "OPPORTUNITY")


def _fmt_target(value: float) -> str:
    return f"{value:g}"


def build_system_prompt(context: BusinessContext) -> str:
    bp = context.business_profile
    dc = context.data_contracts
    ar = context.attribution_rules
    rails = context.trust_and_safety_rails
    targets = context.targets_and_constraints
    sym = bp.currency_symbol

    profile = [
        f"- Store: {bp.store_name} ({bp.industry})",
        f"- Stage: {bp.business_stage} | AOV band: {bp.aov_band} | Margins: {bp.margin_model}",
        f"- Currency: {sym} ({bp.currency})",
    ]
    if bp.hero_products:
        profile.append(f"- Hero products: {', '.join(bp.hero_products)}")
    if targets.roas_goal:
        profile.append(f"- ROAS target: {_fmt_target(targets.roas_goal)}x")
    if targets.cac_ceiling:
        profile.append(f"- CAC ceiling: {sym}{_fmt_target(targets.cac_ceiling)}")
    if targets.mer_goal:
        profile.append(f"- MER goal: {_fmt_target(targets.mer_goal)}x")

    def defn(label, contract):
        if contract.warning:
            return f"   - {label} = {contract.definition} ({contract.warning})"
        return f"   - {label} = {contract.definition}"

    definitions = [
        defn("Revenue", dc.revenue),
        defn("Orders", dc.orders),
        defn("Sessions", dc.sessions),
        defn("Conversion rate", dc.conversion_rate),
        defn("ROAS", dc.roas),
    ]

    safety = [
        f"- {rails.minimum_purchases.rule}",
        f"- {rails.minimum_trend_days.rule}",
        f"- {rails.session_drop_flag.rule}",
        f"- {rails.revenue_gap_flag.rule}",
    ]

    sections = [
        "You are a senior ecommerce analyst embedded inside a Shopify dashboard app.\n"
        "Your job: turn raw store data into sharp, actionable insight cards for the store owner.",
        "## Business Context\n" + "\n".join(profile),
        "## Insight Pipeline (follow this in order)\n"
        "1. DATA AUDIT: Check what data sources are present. Note any missing sources.\n"
        "2. METRIC ASSEMBLY: Use canonical definitions:\n" + "\n".join(definitions) + "\n"
        f"3. CROSS-SOURCE VALIDATION: {ar.discrepancy_flag.rule}\n"
        "4. PATTERN DETECTION: Find the biggest signal in the data. What's working? What's broken?\n"
        "5. ROOT CAUSE HYPOTHESIS: Why is that pattern happening? Name the specific driver.\n"
        "6. ACTION PRESCRIPTION: One specific action per tile. Name the product, page, or campaign.",
        "## Safety Rails\n" + "\n".join(safety),
        "## Output Format\n"
        "- Write like a sharp advisor texting a store owner. No corporate buzzwords.\n"
        f"- Use {sym} for all currency values.\n"
        "- Use emoji STRATEGICALLY only: 📈📉 trends, 💰 money, ⚠️ problems, ✅ wins, 🎯 actions\n"
        "- Every sentence must be actionable or data-driven. No filler.\n"
        "- NEVER just celebrate wins. Every positive MUST include \"but here's how to go further\".\n"
        "- Format positives as: [Current state] → [Action] = [Expected result]\n"
        "- Use SPECIFIC product names from the data. Never say \"your products\", name them.\n"
        "- If revenue is estimated, note with ~ prefix.\n"
        "- Do NOT present cross-source conversion rate as exact, it's directional only.",
    ]
    return "\n\n".join(sections)


def _data_block(summary: DataSummary, sym: str) -> str:
    lines = [f"Here is the store data for the {summary.period}:", ""]

    s = summary.shopify
    lines.append("SHOPIFY DATA:")
    lines.append(f"- Orders: {s.orders:,} (exact count)")
    lines.append(f"- AOV: {sym}{s.aov:.2f} (from {s.sample_size} order sample)")
    if s.revenue_is_estimated:
        lines.append(f"- Estimated revenue: ~{sym}{s.revenue:.2f} (AOV × order count)")
    else:
        lines.append(f"- Revenue: {sym}{s.revenue:.2f}")

    lines.append("")
    if summary.ga4:
        g = summary.ga4
        lines.append("GA4 DATA:")
        lines.append(f"- Sessions: {g.sessions:,}")
        lines.append(f"- Bounce rate: {g.bounce_rate * 100:.1f}%")
        lines.append(f"- Users: {g.users:,}")
        lines.append(f"- Page views: {g.page_views:,}")
    else:
        lines.append("GA4 DATA: Not connected")

    lines.append("")
    if summary.meta_ads:
        m = summary.meta_ads
        lines.append("META ADS DATA:")
        lines.append(f"- Spend: {sym}{m.spend:.2f}")
        lines.append(f"- Impressions: {m.impressions:,}")
        lines.append(f"- Clicks: {m.clicks:,}")
        lines.append(f"- CPC: {sym}{m.cpc:.2f}" if m.cpc is not None else "- CPC: N/A")
        lines.append(f"- CTR: {m.ctr:.2f}%" if m.ctr is not None else "- CTR: N/A")
        lines.append(f"- Purchases: {m.purchases}")
        lines.append(f"- Revenue (Meta-attributed): {sym}{m.revenue:.2f}")
        lines.append(f"- ROAS (Meta revenue ÷ Meta spend): {m.roas:.2f}x" if m.roas is not None else "- ROAS: N/A")
    else:
        lines.append("META ADS DATA: Not connected")

    tp = summary.top_products
    if tp:
        if tp.by_revenue:
            lines.append("")
            lines.append("TOP PRODUCTS BY REVENUE:")
            for i, p in enumerate(tp.by_revenue, 1):
                lines.append(f"{i}. {p.title}: {sym}{p.revenue:.2f} ({p.units} units)")
        if tp.by_units:
            lines.append("")
            lines.append("TOP PRODUCTS BY UNITS SOLD:")
            for i, p in enumerate(tp.by_units, 1):
                lines.append(f"{i}. {p.title}: {p.units} units ({sym}{p.revenue:.2f})")

    return "\n".join(lines) + "\n"


def tile_keys(has_ad_data: bool) -> tuple[str, ...]:
    return CORE_TILES + ("AD_PERFORMANCE",) if has_ad_data else CORE_TILES


def build_user_prompt(
    summary: DataSummary,
    has_ad_data: bool,
    context_notes: list[str] | tuple = (),
    currency_symbol: str = "£",
) -> str:
    keys = tile_keys(has_ad_data)
    tile_block = (
        f"\nRespond with EXACTLY these {len(keys)} sections using {SECTION_MARKER} headers:\n\n"
        + "\n\n".join(TILE_PROMPTS[k].format(sym=currency_symbol) for k in keys)
    )
    prompt = _data_block(summary, currency_symbol) + tile_block

    if context_notes:
        notes = "\n".join(f"- {n}" for n in context_notes)
        prompt = (
            "\nCONTEXT NOTES (acknowledge these briefly at the start of HEALTH CHECK):\n"
            f"{notes}\n\n" + prompt
        )
    return prompt
