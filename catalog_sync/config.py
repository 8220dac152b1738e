from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DB_URL: str = "sqlite+aiosqlite:///./var/catalog.db"
    MIGRATE_ON_START: bool = Field(
        default=True,
        validation_alias=AliasChoices("MIGRATE_ON_START", "DB_MIGRATE_ON_START"),
    )
    TIMEZONE: str = "Europe/Moscow"

    # Логи
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # Balance API поставщика
    BALANCE_API_URL: str = "https://cloud.mda-medusa.ru/mda-trade/hs/Api/BalanceData"
    BALANCE_API_USERNAME: str = ""
    BALANCE_API_PASSWORD: str = ""
    BALANCE_API_CERT_PATH: str = "certs/balance_api.p12"
    BALANCE_API_CERT_PASSWORD: str | None = None
    BALANCE_API_TIMEOUT: float = Field(default=30.0, gt=0)
    BALANCE_API_REQUEST_TYPE: str = "store_data"

    # HTTP клиент
    HTTP_TIMEOUT_CONNECT: float = 10.0
    HTTP_PROXY_URL: str | None = None

    # Синхронизация каталога
    CATALOG_SYNC_ENABLED: bool = True
    CATALOG_SYNC_INTERVAL_MINUTES: int = Field(default=30, ge=1, le=1440)
    CATALOG_SYNC_STARTUP_DELAY_SECONDS: int = Field(default=10, ge=0, le=3600)
    CATALOG_SYNC_WORKERS: int = Field(default=4, ge=1, le=16)
    CATALOG_SYNC_SHOP_TIMEOUT_SECONDS: float = Field(default=300.0, gt=0)
    CATALOG_EXCLUSIONS_TTL_SECONDS: int = Field(default=300, ge=0)

    # Админ-панель / FastAPI
    DASHBOARD_ENABLED: bool = True
    DASHBOARD_HOST: str = "0.0.0.0"
    DASHBOARD_PORT: int = 8081
    DASHBOARD_TOKEN: str = ""

    # Мониторинг
    SENTRY_DSN: str | None = None
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.0, ge=0.0, le=1.0)

    ENVIRONMENT: str = Field(default="local")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("BALANCE_API_CERT_PASSWORD", "HTTP_PROXY_URL", "SENTRY_DSN", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def balance_auth(self) -> tuple[str, str]:
        """Basic-auth pair for the supplier endpoint."""

        return self.BALANCE_API_USERNAME, self.BALANCE_API_PASSWORD


settings = Settings()
