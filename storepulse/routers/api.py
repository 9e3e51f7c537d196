import logging

from fastapi import APIRouter, Depends, HTTPException, status

from storepulse.config import settings
from storepulse.connectors import get_analytics_connector
from storepulse.connectors.base import ShopifyAuthError
from storepulse.connectors.shopify import ShopifyConnector
from storepulse.dependencies import get_shop_token, get_store
from storepulse.schemas import InsightsResponse, ShopToken
from storepulse.services import dashboard_service
from storepulse.services.cache import ShopStore

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


@router.get("/insights", response_model=InsightsResponse)
async def get_insights(
    shop_token: tuple[str, ShopToken] = Depends(get_shop_token),
    store: ShopStore = Depends(get_store),
):
    shop, token = shop_token
    if not settings.ANTHROPIC_API_KEY:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="ANTHROPIC_API_KEY not configured")

    try:
        entry = await dashboard_service.build_insights(
            shop, token.access_token, store,
            shopify=ShopifyConnector(shop, token.access_token),
        )
    except ShopifyAuthError:
        dashboard_service.invalidate_shop(shop, store)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="token_expired")
    except Exception as e:
        log.exception("[api] insights error for %s: %s", shop, e)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to generate insights")

    return InsightsResponse(
        shopify_stats=entry.shopify_stats,
        ga_data=entry.ga_data,
        meta_ads_data=entry.meta_ads_data,
        tiles=entry.tiles,
        generated_at=entry.generated_at,
    )


if settings.is_development:
    @router.get("/test-ga")
    async def test_ga():
        """Development-only probe of the analytics configuration."""
        try:
            data = await get_analytics_connector().fetch()
        except Exception as e:
            log.error("[test-ga] error: %s", e)
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
        if data is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Google Analytics not configured. Set GA_PROPERTY_ID and GA_SERVICE_ACCOUNT_JSON",
            )
        return {
            "status": "ok",
            "property_id": settings.GA_PROPERTY_ID,
            "period": f"last {settings.REPORT_WINDOW_DAYS} days",
            "metrics": data,
        }
