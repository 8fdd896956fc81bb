from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CAFETERIA_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    database_url: str = "duckdb://./cafeteria/data/cafeteria.duckdb"

    # JWT
    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expire_hours: int = 12

    # First admin account, created at startup when no admin exists
    admin_username: Optional[str] = None
    admin_password: Optional[str] = None

    # API
    api_title: str = "Cafeteria Meal Redemption API"
    api_version: str = "1.0.0"
    api_prefix: str = "/api/v1"
    debug: bool = False
    log_level: str = "INFO"

    # Calendar day used by the one-meal-per-type-per-day rule
    facility_timezone: str = "Africa/Addis_Ababa"

    # Receipts
    currency: str = "ETB"
    receipt_header: str = "CAFETERIA"

    # Scanning station
    station_base_url: str = "http://localhost:8000/api/v1"
    station_token: Optional[str] = None
    station_min_token_length: int = 4
    station_debounce_seconds: float = 1.0
    station_request_timeout_seconds: float = 10.0


settings = Settings()
