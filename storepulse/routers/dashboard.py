import logging
from urllib.parse import quote

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, StreamingResponse

from storepulse.config import settings
from storepulse.connectors.base import ConnectorError, ShopifyAuthError
from storepulse.connectors.shopify import ShopifyConnector
from storepulse.dependencies import get_shop_token, get_store
from storepulse.schemas import ShopToken
from storepulse.services import dashboard_service
from storepulse.services.cache import ShopStore
from storepulse.views import (
    is_stale, reauth_script, render_content, render_skeleton, retry_script,
    swap_content_script, templates,
)

log = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])


def _install_url(shop: str, error: str = "") -> str:
    url = f"/install?shop={quote(shop, safe='')}" if shop else "/install"
    if error:
        url += f"&error={error}"
    return url


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard_page(
    request: Request,
    shop: str = Query(""),
    refresh: str = Query(""),
    store: ShopStore = Depends(get_store),
):
    token = store.get_token(shop) if shop else None
    if not token:
        return RedirectResponse(url=_install_url(shop), status_code=302)

    connector = ShopifyConnector(shop, token.access_token)
    try:
        log.info("[dashboard] fetching data for shop: %s", shop)
        shop_info = await connector.fetch_shop()
    except ShopifyAuthError:
        log.warning("[dashboard] token rejected for %s, invalidating", shop)
        dashboard_service.invalidate_shop(shop, store)
        return RedirectResponse(url=_install_url(shop, "token_expired"), status_code=302)
    except (ConnectorError, httpx.HTTPError) as e:
        log.error("[dashboard] shop lookup failed for %s: %s", shop, e)
        return templates.TemplateResponse(request, "error.html", {
            "message": "Failed to load dashboard. Please try again, or contact support if the problem persists.",
        }, status_code=500)

    store_name = shop_info.get("name") or shop
    force_refresh = refresh == "1"
    if force_refresh:
        store.clear_all_caches(shop)

    ai_enabled = bool(settings.ANTHROPIC_API_KEY)
    entry = store.get_insights(shop) if ai_enabled and not force_refresh else None

    if entry or not ai_enabled:
        log.info("[dashboard] rendering full page (cached: %s)", bool(entry))
        return templates.TemplateResponse(request, "dashboard.html", {
            "store_name": store_name,
            "shop": shop,
            "active": "dashboard",
            "content": render_content(entry, shop) if entry else None,
            "stale": bool(entry) and is_stale(entry),
        })

    log.info("[dashboard] cache miss, streaming skeleton and generating insights")
    return StreamingResponse(
        _stream_dashboard(shop, token, store, store_name, connector, force_refresh),
        media_type="text/html; charset=utf-8",
    )


async def _stream_dashboard(
    shop: str,
    token: ShopToken,
    store: ShopStore,
    store_name: str,
    connector: ShopifyConnector,
    force_refresh: bool,
):
    yield render_skeleton(store_name, shop)
    try:
        entry = await dashboard_service.build_insights(
            shop, token.access_token, store,
            force_refresh=force_refresh, shopify=connector,
        )
        yield swap_content_script(render_content(entry, shop))
        log.info("[dashboard] streamed real content")
    except ShopifyAuthError:
        log.warning("[dashboard] token rejected mid-generation for %s, invalidating", shop)
        dashboard_service.invalidate_shop(shop, store)
        yield reauth_script(shop)
    except Exception as e:
        # Headers are already sent; the page shows a retry link instead.
        log.exception("[dashboard] generation error for %s: %s", shop, e)
        yield retry_script(shop)
    yield "</body></html>"


@router.get("/dashboard/refresh")
async def refresh_dashboard(
    shop_token: tuple[str, ShopToken] = Depends(get_shop_token),
    store: ShopStore = Depends(get_store),
):
    """Background refresh used by pages whose cached insights predate today."""
    shop, token = shop_token
    try:
        entry = await dashboard_service.build_insights(
            shop, token.access_token, store,
            force_refresh=True, shopify=ShopifyConnector(shop, token.access_token),
        )
    except ShopifyAuthError:
        dashboard_service.invalidate_shop(shop, store)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="token_expired")
    except Exception as e:
        log.exception("[dashboard] refresh failed for %s: %s", shop, e)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to refresh insights")

    if not entry.has_tiles:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Insights unavailable")
    return {"html": render_content(entry, shop)}
