"""Configuration management for RoomSplit."""

from decimal import Decimal
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ROOMSPLIT_",
        case_sensitive=False,
        extra="ignore",
    )

    # Money
    currency_code: str = "INR"
    currency_decimals: int = Field(default=2, ge=0, le=6)  # paise, cents, ...
    settlement_tolerance: Decimal = Field(default=Decimal("0"), ge=0)

    # Storage
    database_path: Path = Path.home() / ".roomsplit" / "roomsplit.db"
    state_key: str = "group"

    # Email notifier endpoint
    email_endpoint_url: str = "http://localhost:5000"
    email_timeout: float = 30.0

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your ROOMSPLIT_* environment "
            f"variables or .env file.\n"
            f"Error: {e}"
        ) from e
