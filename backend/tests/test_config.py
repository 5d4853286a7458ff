import pytest

from receivables.config import load_settings


def test_gateway_url_trailing_slash_is_stripped(monkeypatch) -> None:
    monkeypatch.setenv("GATEWAY_API_URL", "https://production.wompi.co/v1/")
    assert load_settings().gateway_api_url == "https://production.wompi.co/v1"


def test_cors_origins_are_split(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "https://portal.example.com, ,http://localhost:3000")
    assert load_settings().cors_origins == ["https://portal.example.com", "http://localhost:3000"]


def test_production_requires_jwt_secret(monkeypatch) -> None:
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.delenv("JWT_SECRET", raising=False)
    with pytest.raises(RuntimeError):
        load_settings()


def test_production_defaults_to_secure_cookies(monkeypatch) -> None:
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("JWT_SECRET", "s3cret")
    monkeypatch.delenv("COOKIE_SECURE", raising=False)
    monkeypatch.delenv("COOKIE_SAMESITE", raising=False)
    loaded = load_settings()
    assert loaded.cookie_secure is True
    assert loaded.cookie_samesite == "none"
    assert loaded.seed_dev_user is False
