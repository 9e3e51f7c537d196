"""Google Analytics 4 connector.

Reads property-level totals for the trailing report window through the
GA4 Data API with a service account.
"""

import asyncio
import json
import logging
from datetime import date, timedelta

from google.analytics.data_v1beta import BetaAnalyticsDataClient
from google.analytics.data_v1beta.types import DateRange, Metric, RunReportRequest
from google.oauth2 import service_account

from storepulse.config import settings
from storepulse.connectors.base import AnalyticsData, AnalyticsError, SourceConnector

log = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/analytics.readonly"]
METRICS = ["sessions", "screenPageViews", "activeUsers", "bounceRate"]


class GA4Connector(SourceConnector):
    name = "ga4"

    def __init__(self, property_id: str = "", service_account_json: str = "", client_factory=None):
        self.property_id = property_id
        self.service_account_json = service_account_json
        self.client_factory = client_factory or _build_client

    def is_configured(self) -> bool:
        return bool(self.property_id and self.service_account_json)

    async def fetch(self, window_days: int | None = None) -> AnalyticsData | None:
        log.info("[ga4] property: %s", self.property_id or "(not set)")
        if not self.is_configured():
            log.info("[ga4] skipping, GA_PROPERTY_ID or GA_SERVICE_ACCOUNT_JSON not set")
            return None

        try:
            info = json.loads(self.service_account_json)
        except json.JSONDecodeError as e:
            log.error("[ga4] failed to parse GA_SERVICE_ACCOUNT_JSON: %s", e)
            return None
        log.debug("[ga4] client_email: %s", info.get("client_email", "(missing)"))

        days = window_days or settings.REPORT_WINDOW_DAYS
        end = date.today()
        start = end - timedelta(days=days)
        log.info("[ga4] date range: %s to %s", start.isoformat(), end.isoformat())

        request = RunReportRequest(
            property=f"properties/{self.property_id}",
            date_ranges=[DateRange(start_date=start.isoformat(), end_date=end.isoformat())],
            metrics=[Metric(name=m) for m in METRICS],
        )
        client = None
        try:
            client = self.client_factory(info)
            # The Data API client is blocking.
            response = await asyncio.to_thread(client.run_report, request)
        except Exception as e:
            raise AnalyticsError(f"GA4 run_report failed: {e}") from e
        finally:
            if client is not None:
                client.transport.close()

        return _parse_report(response)


def _build_client(info: dict) -> BetaAnalyticsDataClient:
    credentials = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
    return BetaAnalyticsDataClient(credentials=credentials)


def _parse_report(response) -> AnalyticsData:
    metadata = getattr(response, "metadata", None)
    if metadata:
        if getattr(metadata, "data_loss_from_other_row", False):
            log.warning("[ga4] data loss from (other) row")
        if getattr(metadata, "sampling_metadatas", None):
            log.warning("[ga4] response is sampled")
        if getattr(metadata, "schema_restriction_response", None):
            log.warning("[ga4] schema restriction (thresholding) applied")

    rows = list(response.rows or [])
    log.info("[ga4] row count: %d", len(rows))
    if not rows:
        log.info("[ga4] no data returned")
        return AnalyticsData()

    values = [mv.value for mv in rows[0].metric_values]
    data = AnalyticsData(
        sessions=int(float(values[0])),
        page_views=int(float(values[1])),
        users=int(float(values[2])),
        bounce_rate=float(values[3]),
    )
    log.info("[ga4] data: %s", data)
    return data
