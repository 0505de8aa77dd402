from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "Magidekt"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "postgresql+asyncpg://localhost:5432/magidekt"

    scryfall_url: str = "https://api.scryfall.com"
    scryfall_timeout: float = 30.0

    # Scryfall's /cards/collection endpoint accepts at most 75 identifiers
    oracle_batch_size: int = Field(default=75, ge=1, le=75)


settings = Settings()


# =============================================================================
# DECK FORMATS
# =============================================================================

# Valid values for a deck's format tag
DECK_FORMATS = (
    "standard",
    "pioneer",
    "modern",
    "legacy",
    "vintage",
    "commander",
    "brawl",
    "historic",
    "pauper",
    "casual",
)
