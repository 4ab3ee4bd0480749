from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

STA_SCHEMA = "sta"
FTA_SCHEMA = "fta"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Outage DB (staging + fact schemas live in the same database)
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "electricity_outage"
    db_user: str = "outage_sync"
    db_password: SecretStr = SecretStr("changeme")
    staging_db_schema: str = STA_SCHEMA
    fact_db_schema: str = FTA_SCHEMA

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_key: SecretStr = SecretStr("dev-api-key-change-in-production")
    api_workers: int = 4
    api_log_level: str = "info"
    environment: str = "development"

    # Sync
    sync_procedure_mode: Literal["stored", "orm"] = "stored"
    # Defaults to sp_create / sp_close in the fact schema
    sync_create_procedure: str | None = None
    sync_close_procedure: str | None = None
    sync_lock_timeout_ms: int = 5000

    # Orchestrator
    orchestrator_api_base_url: str = "http://localhost:8000/api"
    orchestrator_http_timeout_seconds: float = 30.0
    orchestrator_log_level: str = "info"

    # Seed
    seed_profile: str = "standard"
    seed_random_seed: int = 42

    @property
    def db_url_sync(self) -> str:
        pwd = self.db_password.get_secret_value()
        return (
            f"postgresql+psycopg2://{self.db_user}:{pwd}"
            f"@{self.db_host}:{self.db_port}"
            f"/{self.db_name}"
        )

    @property
    def create_procedure_name(self) -> str:
        return self.sync_create_procedure or f"{self.fact_db_schema}.sp_create"

    @property
    def close_procedure_name(self) -> str:
        return self.sync_close_procedure or f"{self.fact_db_schema}.sp_close"

    @property
    def schema_translate_map(self) -> dict[str, str]:
        return {
            STA_SCHEMA: self.staging_db_schema,
            FTA_SCHEMA: self.fact_db_schema,
        }


settings = Settings()
