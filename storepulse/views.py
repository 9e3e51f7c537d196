"""Template setup and the view fields the dashboard templates consume."""

import json
import re
from datetime import datetime, timedelta
from pathlib import Path
from urllib.parse import quote

from fastapi.templating import Jinja2Templates
from markupsafe import Markup, escape

from storepulse.config import settings
from storepulse.schemas import InsightsEntry, Severity
from storepulse.services.business_context import get_business_context

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

STATUS_EMOJIS = ("🟢", "🟡", "🔴")
SEVERITY_CLASS = {
    Severity.HEALTHY: "tile-healthy",
    Severity.WARNING: "tile-warning",
    Severity.CRITICAL: "tile-critical",
}
JUST_REFRESHED_SECONDS = 5

_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")


def tile_html(text: str | None) -> Markup:
    """Escape model text, then render ``**bold**`` and line breaks."""
    if not text:
        return Markup("")
    html = str(escape(text))
    html = _BOLD_RE.sub(r"<strong>\1</strong>", html)
    return Markup(html.replace("\n", "<br>"))


templates.env.filters["tile_html"] = tile_html
templates.env.filters["urlquote"] = lambda s: quote(s or "", safe="")


def split_status_emoji(text: str) -> tuple[str, str]:
    for emoji in STATUS_EMOJIS:
        if text.startswith(emoji):
            return emoji, text[len(emoji):].strip()
    return "", text


def _bounce_verdict(bounce_rate: float) -> str:
    pct = bounce_rate * 100
    if pct < 40:
        return "Great engagement ✅"
    if pct <= 65:
        return "Bounce OK ➡️"
    return "High bounce ⚠️"


def _updated_label(generated: datetime, now: datetime) -> str:
    time_str = generated.strftime("%H:%M")
    if generated.date() == now.date():
        return f"Today at {time_str}"
    return f"{generated.strftime('%b')} {generated.day} at {time_str}"


def content_context(
    entry: InsightsEntry,
    shop: str,
    now: datetime | None = None,
    currency_symbol: str | None = None,
) -> dict:
    now = now or datetime.now()
    if currency_symbol is None:
        currency_symbol = get_business_context().business_profile.currency_symbol
    window = settings.REPORT_WINDOW_DAYS
    start = now - timedelta(days=window)
    stats = entry.shopify_stats
    ga = entry.ga_data
    meta = entry.meta_ads_data
    generated = datetime.fromtimestamp(entry.generated_at)

    orders_per_day = round(stats.order_count / window)
    if orders_per_day > 100:
        order_trend = "📈"
    elif orders_per_day < 50:
        order_trend = "📉"
    else:
        order_trend = "➡️"

    tiles = entry.tiles
    health_emoji, health_body = split_status_emoji(tiles.health_check) if tiles else ("", "")
    ad_emoji, ad_body = split_status_emoji(tiles.ad_performance) if tiles else ("", "")

    return {
        "shop": shop,
        "entry": entry,
        "currency_symbol": currency_symbol,
        "stats": stats,
        "ga": ga,
        "meta": meta,
        "tiles": tiles if entry.has_tiles else None,
        "date_range": f"{start.day} {start.strftime('%b')} - {now.day} {now.strftime('%b %Y')}",
        "orders_per_day": orders_per_day,
        "order_trend": order_trend,
        "bounce_verdict": _bounce_verdict(ga.bounce_rate) if ga else "",
        "meta_roas": f"{meta.roas:.2f}" if meta and meta.roas is not None else None,
        "updated_label": _updated_label(generated, now),
        "just_refreshed": now.timestamp() - entry.generated_at < JUST_REFRESHED_SECONDS,
        "health_class": SEVERITY_CLASS[tiles.health_severity] if tiles else "tile-healthy",
        "ad_class": SEVERITY_CLASS[tiles.ad_severity] if tiles else "tile-healthy",
        "health_emoji": health_emoji,
        "health_body": health_body,
        "ad_emoji": ad_emoji,
        "ad_body": ad_body,
    }


def render_content(entry: InsightsEntry, shop: str) -> str:
    return templates.get_template("_content.html").render(**content_context(entry, shop))


def render_skeleton(store_name: str, shop: str) -> str:
    """Opening half of the streamed page; the caller closes body and html."""
    return templates.get_template("skeleton.html").render(store_name=store_name, shop=shop)


def is_stale(entry: InsightsEntry, now: datetime | None = None) -> bool:
    """Cached before today: the page refreshes itself in the background."""
    now = now or datetime.now()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return entry.generated_at < midnight.timestamp()


# ── Streamed follow-up scripts ────────────────────────────────────────────────

def _js(value: str) -> str:
    return json.dumps(value).replace("</", "<\\/")


_STOP_LOADER = "if(window.__li)clearInterval(window.__li);if(window.__lt)clearTimeout(window.__lt);"


def swap_content_script(html: str) -> str:
    return (
        "<script>(function(){var c=document.getElementById('dashboard-content');"
        f"if(c)c.innerHTML={_js(html)};{_STOP_LOADER}}})();</script>"
    )


def reauth_script(shop: str) -> str:
    url = f"/install?shop={quote(shop, safe='')}&error=token_expired"
    return f"<script>window.location.replace({_js(url)});</script>"


def retry_script(shop: str) -> str:
    retry = f"/dashboard?shop={quote(shop, safe='')}&refresh=1"
    message = f'⚠️ Failed to generate insights. <a href="{retry}">Try again</a>'
    return (
        f"<script>(function(){{{_STOP_LOADER}"
        "var el=document.getElementById('loading-status');"
        f"if(el)el.innerHTML={_js(message)};}})();</script>"
    )
