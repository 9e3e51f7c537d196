from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    SHOPIFY_API_VERSION: str = "2024-01"

    GA_PROPERTY_ID: str = ""
    GA_SERVICE_ACCOUNT_JSON: str = ""

    META_SYSTEM_USER_TOKEN: str = ""
    META_AD_ACCOUNT_ID: str = ""
    META_API_VERSION: str = "v18.0"

    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_MODEL: str = "claude-sonnet-4-5-20250929"

    REDIS_URL: str = ""
    INSIGHTS_TTL_SECONDS: int = 24 * 60 * 60
    ORDER_DATA_TTL_SECONDS: int = 24 * 60 * 60

    REPORT_WINDOW_DAYS: int = 30
    BUSINESS_CONTEXT_PATH: str = "business_context.json"
    HTTP_TIMEOUT_SECONDS: float = 30.0

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return not self.is_production


settings = Settings()
