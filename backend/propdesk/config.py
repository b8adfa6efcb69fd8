from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    engine_version: str = "2025-06-01.v1"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Durable store ----
    durable_store: str = "sql"  # sql|memory
    database_url: str = "sqlite:///./propdesk.db"
    snapshot_key: str = "default"
    seed_demo_data: bool = False

    # ---- Compliance rules ----
    due_soon_window_days: int = 30
    default_frequency_months: int = 12

    # ---- PPM resolver ----
    resolver_actor: str = "System"
    resolver_interval_seconds: int = 3600

    # ---- Celery ----
    celery_broker_url: str | None = None
    celery_result_backend: str | None = None

    def model_post_init(self, __context) -> None:
        if int(self.due_soon_window_days) < 0:
            raise ValueError("due_soon_window_days must be >= 0")
        if int(self.default_frequency_months) <= 0:
            raise ValueError("default_frequency_months must be > 0")

        store = (self.durable_store or "sql").strip().lower()
        if store not in ("sql", "memory"):
            raise ValueError(f"durable_store must be sql|memory, got {self.durable_store!r}")
        object.__setattr__(self, "durable_store", store)

        env = (self.app_env or "local").strip().lower()
        if env in ("prod", "production"):
            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")


settings = Settings()
