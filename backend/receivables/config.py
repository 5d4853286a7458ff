from __future__ import annotations

from dataclasses import dataclass
import os


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    app_env: str
    jwt_secret: str
    jwt_algorithm: str
    access_token_ttl_minutes: int
    refresh_token_ttl_days: int
    database_url: str
    seed_dev_user: bool
    seed_dev_email: str
    seed_dev_password: str
    seed_dev_name: str
    cors_origins: list[str]
    cookie_secure: bool
    cookie_samesite: str
    cookie_domain: str | None
    gateway_api_url: str
    gateway_public_key: str
    gateway_private_key: str
    gateway_integrity_secret: str
    gateway_event_secret: str
    gateway_timeout_seconds: float
    upload_batch_size: int
    password_hash_rounds: int
    log_level: str


DEV_JWT_SECRET = "dev-secret"


def load_settings() -> Settings:
    app_env = os.getenv("APP_ENV", "development")
    jwt_secret = os.getenv("JWT_SECRET", DEV_JWT_SECRET)
    if app_env == "production" and jwt_secret == DEV_JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set when APP_ENV=production")
    cookie_secure = _parse_bool(os.getenv("COOKIE_SECURE"), app_env == "production")
    cookie_samesite = os.getenv("COOKIE_SAMESITE")
    if not cookie_samesite:
        cookie_samesite = "none" if cookie_secure else "lax"
    return Settings(
        app_env=app_env,
        jwt_secret=jwt_secret,
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        access_token_ttl_minutes=int(os.getenv("ACCESS_TOKEN_TTL_MINUTES", "360")),
        refresh_token_ttl_days=int(os.getenv("REFRESH_TOKEN_TTL_DAYS", "7")),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./cartera.db"),
        seed_dev_user=_parse_bool(os.getenv("SEED_DEV_USER"), app_env != "production"),
        seed_dev_email=os.getenv("SEED_DEV_EMAIL", "admin@cartera.local"),
        seed_dev_password=os.getenv("SEED_DEV_PASSWORD", "changeme"),
        seed_dev_name=os.getenv("SEED_DEV_NAME", "ADMIN"),
        cors_origins=_parse_csv(
            os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://localhost:3001,http://127.0.0.1:3000,http://127.0.0.1:3001",
            )
        ),
        cookie_secure=cookie_secure,
        cookie_samesite=cookie_samesite,
        cookie_domain=os.getenv("COOKIE_DOMAIN") or None,
        gateway_api_url=os.getenv("GATEWAY_API_URL", "https://sandbox.wompi.co/v1").rstrip("/"),
        gateway_public_key=os.getenv("GATEWAY_PUBLIC_KEY", ""),
        gateway_private_key=os.getenv("GATEWAY_PRIVATE_KEY", ""),
        gateway_integrity_secret=os.getenv("GATEWAY_INTEGRITY_SECRET", ""),
        gateway_event_secret=os.getenv("GATEWAY_EVENT_SECRET", ""),
        gateway_timeout_seconds=float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "15")),
        upload_batch_size=int(os.getenv("UPLOAD_BATCH_SIZE", "1000")),
        password_hash_rounds=int(os.getenv("PASSWORD_HASH_ROUNDS", "10")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


settings = load_settings()
