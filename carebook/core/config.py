from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str
    db_ssl: bool = False
    # Local development only; production schema comes from Alembic
    create_tables_on_startup: bool = False
    # Upper bound for any single store call (read or write), in seconds
    store_timeout_seconds: float = 5.0

    # Access tokens are issued by the external auth service
    secret_key: str
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Day template: first slot at slot_start_hour, last slot starts at slot_end_hour
    slot_duration_minutes: int = 30
    slot_start_hour: int = 10
    slot_end_hour: int = 19
    # A patient may hold one active booking per date, across all providers
    one_booking_per_patient_per_date: bool = True

    # Provider directory placeholders
    default_provider_name: str = "Unknown Doctor"
    default_specialization: str = "General Practice"

    notifications_enabled: bool = True

    # Env
    env: str = "development"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
