# tenancy_engine/config.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    database_url: str = "sqlite:///./tenancy_engine.db"
    sqlite_busy_timeout_seconds: float = 30.0

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Versioning ----
    engine_version: str = "2026-10-19.v1"

    # ---- Auth (identity comes from the auth collaborator) ----
    auth_mode: str = "dev"  # dev|jwt
    dev_auto_provision: bool = True
    jwt_secret: str = "dev-change-me"

    # Dev header names
    dev_header_user_email: str = "X-User-Email"
    dev_header_user_role: str = "X-User-Role"

    # ---- Payment collaborator ----
    payment_collaborator_header: str = "X-Payment-Collaborator-Key"
    payment_collaborator_key: str = "dev-payment-key"

    # ---- Lifecycle toggles ----
    require_verified_tenants: bool = False
    key_collection_auto_schedule: bool = False
    key_collection_default_hour: int = 12  # local noon, the day before start
    default_currency: str = "EUR"

    # ---- Celery ----
    celery_broker_url: str | None = None
    celery_result_backend: str | None = None
    notifications_batch_size: int = 200

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        if not is_prod:
            return

        # Hard fail: prod must not trust spoofable headers or shipped secrets
        if (self.auth_mode or "").strip().lower() == "dev":
            raise ValueError("SECURITY: auth_mode=dev is not allowed in prod")
        if self.jwt_secret == "dev-change-me":
            raise ValueError("SECURITY: jwt_secret must be set in prod")
        if self.payment_collaborator_key == "dev-payment-key":
            raise ValueError("SECURITY: payment_collaborator_key must be set in prod")

        origins = self.cors_allow_origins
        if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
            raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")


settings = Settings()
