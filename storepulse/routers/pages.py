from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from storepulse.config import settings
from storepulse.dependencies import get_store
from storepulse.services.cache import ShopStore
from storepulse.views import templates

router = APIRouter(tags=["pages"])


@router.get("/", response_class=HTMLResponse)
def home(shop: str = Query(""), store: ShopStore = Depends(get_store)):
    if shop and store.get_token(shop):
        return RedirectResponse(url=f"/dashboard?shop={quote(shop, safe='')}", status_code=302)
    return RedirectResponse(url="/install", status_code=302)


@router.get("/install", response_class=HTMLResponse)
def install_page(request: Request, shop: str = Query(""), error: str = Query(""), store: ShopStore = Depends(get_store)):
    if shop and store.get_token(shop):
        return RedirectResponse(url=f"/dashboard?shop={quote(shop, safe='')}", status_code=302)
    response = templates.TemplateResponse(request, "install.html", {"shop": shop, "error": error})
    response.headers["X-Frame-Options"] = "DENY"
    return response


@router.get("/settings", response_class=HTMLResponse)
def settings_page(request: Request, shop: str = Query(""), store: ShopStore = Depends(get_store)):
    if not shop or not store.get_token(shop):
        return RedirectResponse(url=f"/install?shop={quote(shop, safe='')}" if shop else "/install", status_code=302)
    return templates.TemplateResponse(request, "settings.html", {
        "shop": shop,
        "active": "settings",
        "ga_configured": bool(settings.GA_PROPERTY_ID and settings.GA_SERVICE_ACCOUNT_JSON),
        "meta_configured": bool(settings.META_SYSTEM_USER_TOKEN and settings.META_AD_ACCOUNT_ID),
        "ai_configured": bool(settings.ANTHROPIC_API_KEY),
    })


@router.post("/disconnect")
def disconnect(shop: str = Query(""), store: ShopStore = Depends(get_store)):
    if shop:
        store.delete_all(shop)
    return RedirectResponse(url="/install", status_code=303)
