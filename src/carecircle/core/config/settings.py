"""Application settings loaded from environment variables."""

from __future__ import annotations

from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """CareCircle server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default; there is no auth layer in front of the MCP tools.
    carecircle_host: str = "127.0.0.1"
    carecircle_port: int = 8001
    carecircle_log_level: str = "info"
    carecircle_allow_insecure_bind: bool = False

    # Storage (record store + insight log)
    db_path: str = "~/.carecircle/care.db"

    # Encryption of raw record payloads. Storage is disabled when empty.
    encryption_key: str = ""

    # Calendar day / hour-of-day boundaries for every insight rule
    care_timezone: str = "Asia/Tokyo"

    @property
    def tzinfo(self) -> ZoneInfo:
        """Resolve ``care_timezone`` to a tzinfo."""
        return ZoneInfo(self.care_timezone)


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
