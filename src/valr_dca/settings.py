from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    api_key: str | None = Field(default=None, alias="API_KEY")
    api_secret: str | None = Field(default=None, alias="API_SECRET")
    valr_base_url: str = Field(default="https://api.valr.com", alias="VALR_BASE_URL")
    valr_timeout_seconds: float = Field(default=30.0, alias="VALR_TIMEOUT_SECONDS")

    # Comma-separated lists, parsed by config.resolve_policy.
    dca_execution_hours: str | None = Field(default=None, alias="DCA_EXECUTION_HOURS")
    dca_currencies: str | None = Field(default=None, alias="DCA_CURRENCIES")
    dca_amounts: str | None = Field(default=None, alias="DCA_AMOUNTS")

    dca_fiat_currency: str = Field(default="ZAR", alias="DCA_FIAT_CURRENCY")
    dca_order_id_granularity: str = Field(default="auto", alias="DCA_ORDER_ID_GRANULARITY")
    dca_order_lookup_failure: str = Field(default="assume_not_placed", alias="DCA_ORDER_LOOKUP_FAILURE")
    dca_placement_failure: str = Field(default="abort", alias="DCA_PLACEMENT_FAILURE")

    dry_run: bool = Field(default=True, alias="DRY_RUN")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")
