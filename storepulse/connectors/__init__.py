from storepulse.config import settings
from storepulse.connectors.base import SourceConnector
from storepulse.connectors.ga4 import GA4Connector
from storepulse.connectors.meta_ads import MetaAdsConnector
from storepulse.connectors.shopify import ShopifyConnector


def get_analytics_connector() -> SourceConnector:
    return GA4Connector(
        property_id=settings.GA_PROPERTY_ID,
        service_account_json=settings.GA_SERVICE_ACCOUNT_JSON,
    )


def get_ad_connector() -> SourceConnector:
    return MetaAdsConnector(
        access_token=settings.META_SYSTEM_USER_TOKEN,
        ad_account_id=settings.META_AD_ACCOUNT_ID,
        api_version=settings.META_API_VERSION,
    )


__all__ = [
    "GA4Connector", "MetaAdsConnector", "ShopifyConnector", "SourceConnector",
    "get_ad_connector", "get_analytics_connector",
]
