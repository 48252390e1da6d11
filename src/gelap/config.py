"""Runtime settings, read from GELAP_* environment variables or a .env file."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from gelap.core.keys import NoncePolicy


class GelapSettings(BaseSettings):
    """Wallet core configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GELAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    storage_namespace: str = Field("gelap", min_length=1, description="Prefix of persisted keys")
    database_url: str = Field("sqlite:///gelap_wallet.db", description="SQLAlchemy URL of the key-value store")
    merkle_tree_depth: int = Field(32, ge=1, le=64)
    key_nonce_policy: NoncePolicy = NoncePolicy.TIMESTAMP
    devnet_max_block_range: int = Field(10000, ge=1, description="Blocks per event query on the local chain")


_settings: Optional[GelapSettings] = None


def get_settings() -> GelapSettings:
    """Get or create the process-wide settings instance."""
    global _settings
    if _settings is None:
        _settings = GelapSettings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the environment is read again."""
    global _settings
    _settings = None
