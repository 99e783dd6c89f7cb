"""Application configuration via Pydantic Settings v2."""

from datetime import date
from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "FashionStoreAnalytics"
    app_env: Literal["development", "testing", "staging", "production"] = "development"
    debug: bool = False

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    # API
    api_host: str = "0.0.0.0"  # noqa: S104
    api_port: int = 8123

    # Staging tables
    staging_dir: str = "./data/staging"
    staging_customers_file: str = "customers.csv"
    staging_products_file: str = "products.csv"
    staging_sales_file: str = "sales.csv"
    staging_sale_items_file: str = "salesitems.csv"

    # Reports
    report_reference_date: date | None = None  # None = today
    report_vip_category: str = "HighMargin"

    @field_validator(
        "staging_customers_file",
        "staging_products_file",
        "staging_sales_file",
        "staging_sale_items_file",
    )
    @classmethod
    def validate_staging_file_name(cls, v: str) -> str:
        """Validate staging file names are plain CSV file names.

        Args:
            v: Configured file name.

        Returns:
            Validated file name.

        Raises:
            ValueError: If the name contains a path separator or is not a CSV.
        """
        if "/" in v or "\\" in v:
            raise ValueError(f"Staging file name '{v}' must not contain a path separator")
        if not v.endswith(".csv"):
            raise ValueError(f"Staging file name '{v}' must end with .csv")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.app_env == "testing"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
