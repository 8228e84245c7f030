# Complete settings with ALL required sections
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from enum import Enum
from typing import List
from pathlib import Path

from core.utils.time import DEFAULT_TIMEZONE


class Environment(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./kite_gateway.db"
    echo: bool = False
    schema_management: str = Field(
        default="auto",  # auto, create_all, skip
        description="Database schema management strategy"
    )


class KiteSettings(BaseModel):
    """Broker endpoints and HTTP behaviour for the session handshake"""
    base_url: str = "https://kite.zerodha.com"
    login_url: str = "https://kite.zerodha.com/api/login"
    twofa_url: str = "https://kite.zerodha.com/api/twofa"
    profile_url: str = "https://kite.zerodha.com/oms/user/profile"
    connect_login_url: str = "https://kite.zerodha.com/connect/login"
    connect_finish_url: str = "https://kite.zerodha.com/connect/finish"
    token_url: str = "https://api.kite.trade/session/token"
    kite_version: str = "3"
    timeout_seconds: float = 15.0
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:94.0) Gecko/20100101 Firefox/94.0"
    )


class InstrumentSettings(BaseModel):
    """Instrument mirror refresh configuration"""
    feed_url: str = "https://api.kite.trade/instruments"
    fetch_timeout_seconds: float = 60.0
    # Daily cutoff after which the previous day's snapshot is stale
    cutoff_hour: int = 8
    cutoff_minute: int = 30
    insert_batch_size: int = 5000
    progress_log_interval: int = 10000
    auto_refresh: bool = True

    @field_validator("cutoff_hour")
    def validate_cutoff_hour(cls, v):
        if not 0 <= v <= 23:
            raise ValueError("cutoff_hour must be between 0 and 23")
        return v

    @field_validator("cutoff_minute")
    def validate_cutoff_minute(cls, v):
        if not 0 <= v <= 59:
            raise ValueError("cutoff_minute must be between 0 and 59")
        return v


class LoggingSettings(BaseModel):
    level: str = "INFO"
    json_format: bool = True
    console_enabled: bool = True
    # Redaction
    redact_keys: list[str] = [
        "authorization", "access_token", "api_secret", "password", "totp_secret",
        "twofa_value", "enctoken", "public_token", "kf_session", "checksum",
        "cookie", "set-cookie", "raw_cookies",
    ]


class APISettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    # CORS settings
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )
    cors_methods: List[str] = Field(
        default=["GET", "POST", "DELETE", "OPTIONS"],
        description="Allowed CORS methods"
    )

    @field_validator('cors_origins')
    def validate_cors_origins(cls, v):
        """Validate CORS origins configuration"""
        if "*" in v and len(v) > 1:
            raise ValueError("Cannot mix '*' with specific origins")
        return v


class Settings(BaseSettings):
    """Main application settings, loaded from environment variables"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore"
    )

    app_name: str = "Kite Gateway"
    version: str = "1.0.0"
    environment: Environment = Environment.DEVELOPMENT
    # Exchange time zone for every stored or reported timestamp
    timezone: str = DEFAULT_TIMEZONE

    database: DatabaseSettings = DatabaseSettings()
    kite: KiteSettings = KiteSettings()
    instruments: InstrumentSettings = InstrumentSettings()
    logging: LoggingSettings = LoggingSettings()
    api: APISettings = APISettings()

    @property
    def base_dir(self) -> str:
        """Get base application directory dynamically"""
        # Go up 2 levels from core/config/settings.py to reach project root
        return str(Path(__file__).resolve().parents[2])


# No global settings instance - use dependency injection instead
