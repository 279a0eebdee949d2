"""Configuration management using Pydantic settings."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_PACKAGE_DIR = Path(__file__).parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Map Highlighter"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Primary structured store
    database_url: str = "sqlite+aiosqlite:///./highlighter.db"

    # Flat key-value stores: legacy (migrated once) and write fallback
    legacy_store_path: Path = Path("./data/legacy_store.json")
    fallback_store_path: Path = Path("./data/legacy_store.json")

    # Bundled dataset loaded on first boot
    default_dataset_path: Path = _PACKAGE_DIR / "data" / "layers_default.json"

    # Nominatim (OpenStreetMap) geocoding
    nominatim_url: str = "https://nominatim.openstreetmap.org"
    user_agent: str = "map-highlighter/0.1.0"
    geocode_timeout: float = 10.0

    # Timing (seconds)
    refetch_delay: float = 1.0   # Nominatim allows 1 request/second
    replay_delay: float = 5.0    # force-render replay
    save_debounce: float = 0.5


settings = Settings()
