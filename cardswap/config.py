from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "CardSwap"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    database_url: str = "postgresql+asyncpg://localhost:5432/cardswap"

    # Radius applied when a location row carries none
    default_radius_km: float = 25.0

    # Days both parties have to meet once a trade is confirmed
    escrow_days: int = 15

    # Percentage of reference price used when a user has no preferences row
    default_price_percentage: float = 80.0

    # Push gateway; empty URL disables push delivery
    push_service_url: str = ""
    push_service_key: str = ""
    push_timeout_seconds: float = 10.0

    # Inventory-changed outbox retry ceiling
    inventory_event_max_attempts: int = 5

    scryfall_bulk_api: str = "https://api.scryfall.com/bulk-data"


settings = Settings()
