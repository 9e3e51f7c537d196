"""Meta (Facebook) Ads insights connector.

Account-level insights from the Graph API for the trailing report window.
"""

import json
import logging
from datetime import date, timedelta

import httpx

from storepulse.config import settings
from storepulse.connectors.base import AdPlatformData, MetaAdsError, SourceConnector

log = logging.getLogger(__name__)

PURCHASE_ACTIONS = ("purchase", "offsite_conversion.fb_pixel_purchase")
FIELDS = "spend,impressions,clicks,actions,action_values"


class MetaAdsConnector(SourceConnector):
    name = "meta_ads"

    def __init__(
        self,
        access_token: str = "",
        ad_account_id: str = "",
        api_version: str = "v18.0",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.access_token = access_token
        self.ad_account_id = ad_account_id
        self.api_version = api_version
        self.transport = transport

    def is_configured(self) -> bool:
        return bool(self.access_token and self.ad_account_id)

    @property
    def account_id(self) -> str:
        if self.ad_account_id.startswith("act_"):
            return self.ad_account_id
        return f"act_{self.ad_account_id}"

    async def fetch(self, window_days: int | None = None) -> AdPlatformData | None:
        if not self.is_configured():
            log.info("[meta] skipping, META_SYSTEM_USER_TOKEN or META_AD_ACCOUNT_ID not set")
            return None

        days = window_days or settings.REPORT_WINDOW_DAYS
        until = date.today()
        since = until - timedelta(days=days)
        url = f"https://graph.facebook.com/{self.api_version}/{self.account_id}/insights"
        params = {
            "time_range": json.dumps({"since": since.isoformat(), "until": until.isoformat()}),
            "fields": FIELDS,
            "level": "account",
        }

        log.info("[meta] fetching ad insights for account: %s (%s to %s)", self.account_id, since, until)
        # The token never goes in the URL; httpx logs request URLs at INFO.
        headers = {"Authorization": f"Bearer {self.access_token}"}
        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS, transport=self.transport) as client:
            resp = await client.get(url, params=params, headers=headers)
        log.info("[meta] response status: %d", resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise MetaAdsError(f"Meta Ads API returned non-JSON ({resp.status_code})") from e

        if data.get("error"):
            message = data["error"].get("message", "unknown error")
            log.error("[meta] API error: %s", message)
            raise MetaAdsError(f"Meta Ads API error: {message}")
        if not resp.is_success:
            raise MetaAdsError(f"Meta Ads API error {resp.status_code}")

        rows = data.get("data") or []
        if not rows:
            log.info("[meta] no ad data returned (no active campaigns?)")
            return AdPlatformData()

        result = parse_insights_row(rows[0])
        log.info("[meta] data: %s", result)
        return result


def _purchase_value(entries: list[dict]) -> str | None:
    for entry in entries or []:
        if entry.get("action_type") in PURCHASE_ACTIONS:
            return entry.get("value")
    return None


def parse_insights_row(row: dict) -> AdPlatformData:
    purchases = _purchase_value(row.get("actions"))
    revenue = _purchase_value(row.get("action_values"))
    return AdPlatformData(
        spend=float(row.get("spend") or 0),
        impressions=int(row.get("impressions") or 0),
        clicks=int(row.get("clicks") or 0),
        purchases=int(float(purchases)) if purchases is not None else 0,
        revenue=float(revenue) if revenue is not None else 0.0,
    )
