import logging
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from storepulse.config import settings
from storepulse.dependencies import get_store
from storepulse.routers import api, dashboard, pages
from storepulse.services.business_context import get_business_context
from storepulse.services.cache import ShopStore, get_shop_store
from storepulse.views import templates

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"

app = FastAPI(
    title="StorePulse",
    description="AI insight dashboard embedded in the Shopify admin",
    version="1.0.0",
)


@app.on_event("startup")
def on_startup():
    # A missing or malformed business context stops the process here.
    context = get_business_context()
    store = get_shop_store()
    log.info(
        "Startup complete (store: %s, cache backend: %s, ai: %s)",
        context.business_profile.store_name,
        getattr(store.backend, "name", "custom"),
        "on" if settings.ANTHROPIC_API_KEY else "off",
    )


# Static files
app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

# Routers
app.include_router(api.router)
app.include_router(dashboard.router)
app.include_router(pages.router)


@app.get("/health")
def health_check(store: ShopStore = Depends(get_store)):
    checks = {"api": "ok", "cache": "ok" if store.backend.ping() else "unavailable"}
    overall = "ok" if checks["cache"] == "ok" else "degraded"
    return {"status": overall, "version": "1.0.0", "checks": checks}


@app.exception_handler(500)
async def server_error_handler(request: Request, exc):
    log.error("Unhandled error on %s: %s", request.url.path, exc)
    if request.url.path.startswith("/api/"):
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    return templates.TemplateResponse(request, "error.html", {
        "message": "Something went wrong. Please try again.",
    }, status_code=500)
