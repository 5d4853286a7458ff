import os

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SEED_DEV_USER", "false")
os.environ.setdefault("COOKIE_SECURE", "false")
os.environ.setdefault("COOKIE_SAMESITE", "lax")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("GATEWAY_PUBLIC_KEY", "pub_test_key")
os.environ.setdefault("GATEWAY_PRIVATE_KEY", "prv_test_key")
os.environ.setdefault("GATEWAY_INTEGRITY_SECRET", "test_integrity_secret")
os.environ.setdefault("GATEWAY_EVENT_SECRET", "test_events_secret")

from fastapi.testclient import TestClient  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import delete  # noqa: E402

from receivables.auth import TokenSubject, create_access_token  # noqa: E402
from receivables.db import Base, SessionLocal, engine  # noqa: E402
from receivables.ledger import replace_all  # noqa: E402
from receivables.main import app  # noqa: E402
from receivables.models import (  # noqa: E402
    ROLE_ADMIN,
    CreditLimitRecord,
    LedgerRecord,
    PaymentRecord,
    User,
)
from receivables.normalizer import normalize_row  # noqa: E402
from receivables.security import hash_password  # noqa: E402

ADMIN_EMAIL = "admin@cartera.local"
ADMIN_PASSWORD = "changeme"


def _reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        user = User(
            email=ADMIN_EMAIL,
            name="ADMIN",
            password_hash=hash_password(ADMIN_PASSWORD),
            role=ROLE_ADMIN,
        )
        db.add(user)
        db.commit()


_reset_db()


def _headers(email: str, name: str | None, role: str) -> dict[str, str]:
    token = create_access_token(TokenSubject(email=email, name=name, role=role))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def _clean_data() -> None:
    with SessionLocal() as db:
        db.execute(delete(PaymentRecord))
        db.execute(delete(LedgerRecord))
        db.execute(delete(CreditLimitRecord))
        db.execute(delete(User).where(User.email != ADMIN_EMAIL))
        db.commit()


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return _headers(ADMIN_EMAIL, "ADMIN", ROLE_ADMIN)


@pytest.fixture()
def make_user(db):
    """Create a user and return auth headers for it."""

    def _make(email: str, role: str, name: str | None = None, sellers=(), clients=()) -> dict[str, str]:
        user = User(
            email=email,
            name=name,
            password_hash=hash_password("secret"),
            role=role,
            associated_sellers=list(sellers),
            associated_clients=list(clients),
        )
        db.add(user)
        db.commit()
        return _headers(email, name, role)

    return _make


@pytest.fixture()
def seed_ledger(db):
    """Replace the ledger with spreadsheet-style rows."""

    def _seed(rows: list[dict]) -> int:
        return replace_all(db, [normalize_row(row) for row in rows])

    return _seed


def _ledger_row(client_id: str, document: str, seller: str, **extra) -> dict:
    row = {
        "Cliente": client_id,
        "Nombre_Cliente": extra.pop("name", f"CLIENTE {client_id}"),
        "Nombre_Vendedor": seller,
        "T_Dcto": extra.pop("doc_type", "FV"),
        "Documento": document,
        "F_Expedic": extra.pop("issued", "15/01/2024"),
        "F_Vencim": extra.pop("due", 45350),
        "Saldo": extra.pop("balance", "1.234,56"),
    }
    row.update(extra)
    return row


@pytest.fixture()
def ledger_row():
    return _ledger_row


@pytest.fixture()
def sample_ledger(seed_ledger) -> list[dict]:
    rows = [
        _ledger_row("900123456", "1001", "CARLOS PEREZ"),
        _ledger_row("900123456", "1002", "CARLOS PEREZ", doc_type="NC", balance="-50"),
        _ledger_row("800555111", "2001", "ANA GOMEZ", Venc_0_30="300"),
        _ledger_row("700999222", "3001", "ana gomez ltda", balance="0"),
    ]
    seed_ledger(rows)
    return rows
