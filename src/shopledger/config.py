"""
Runtime settings, read from the environment (prefix ``SHOPLEDGER_``).

The engine functions never read these implicitly. Entry points (the CLI, the
snapshot loader) pick values from here and pass them in.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SHOPLEDGER_", extra="ignore")

    # Timezone used to turn stored instants into local calendar days
    timezone: str = Field(default="Asia/Ho_Chi_Minh")

    # Parts below this projected quantity show up in low-stock alerts
    low_stock_threshold: float = 10

    # Row limit for top-N tables (products, customers)
    top_n: int = 10

    log_level: str = "INFO"
    debug: bool = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
