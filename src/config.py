"""Application configuration loaded from environment variables and .env file."""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Values are loaded from environment variables first,
    then from a .env file in the project root as fallback.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    DATABASE_URL: str = "sqlite:///./dev.db"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Turn economy
    ACTIONS_PER_HOUR: int = 4
    DEFAULT_MAX_HOURS: int = 24
    STORE_VISIT_ACTION_COST: int = 1

    # New player defaults
    STARTING_CASH: Decimal = Decimal("100.00")
    STARTING_LOAN: Decimal = Decimal("100.00")
    INVENTORY_CAPACITY: int = 10
    STARTING_BOROUGH: str = "Downtown"

    # Reference data (boroughs, stores, distances, transport)
    SEED_DATA_PATH: str = "src/data/seed_market.json"
    REFERENCE_CACHE_TTL_SECONDS: float = 600.0


settings = Settings()
