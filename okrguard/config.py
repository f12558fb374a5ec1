import logging

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database: required, there is no usable default
    database_url: str
    database_url_sync: str = ""

    # Request pool
    db_pool_size: int = 20
    db_max_overflow: int = 5
    db_pool_recycle_seconds: int = 3600

    # Application
    environment: str = "development"
    port: int = 8000
    log_level: str = "info"
    install_policies_on_startup: bool = False

    # CORS
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    # Auth (JWT)
    jwt_secret_key: str = "CHANGE-ME-IN-PRODUCTION"
    jwt_algorithm: str = "HS256"

    # Redis / Celery
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"
    policy_verify_poll_seconds: int = 900

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def sync_database_url(self) -> str:
        """Synchronous driver URL for Alembic and the management CLI."""
        if self.database_url_sync:
            return self.database_url_sync
        return self.database_url.replace("postgresql+asyncpg://", "postgresql://", 1)


settings = Settings()


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
