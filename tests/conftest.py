import os

os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ADMIN_BOOTSTRAP_SECRET"] = "bootstrap-secret"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool
from credit_gate.main import app
from credit_gate.database import get_session
from credit_gate.models import Account, ApprovalStatus
from credit_gate.security import create_access_token
from credit_gate.services.ledger import BalanceEngine

sqlite_url = "sqlite://"

engine = create_engine(
    sqlite_url,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool
)

@pytest.fixture(name="session")
def session_fixture():
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)

@pytest.fixture(name="client")
def client_fixture(session: Session):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()

@pytest.fixture(name="engine")
def engine_fixture():
    return BalanceEngine(max_attempts=5, retry_backoff=0)


def make_account(session: Session, email: str, **fields) -> Account:
    account = Account(email=email, full_name=email.split("@")[0], **fields)
    session.add(account)
    session.commit()
    session.refresh(account)
    return account

def bearer(account: Account) -> dict:
    token = create_access_token(subject=account.id)
    return {"Authorization": f"Bearer {token}"}

@pytest.fixture(name="auth_headers")
def auth_headers_fixture():
    return bearer

@pytest.fixture(name="account_factory")
def account_factory_fixture(session: Session):
    def factory(email: str, **fields) -> Account:
        return make_account(session, email, **fields)
    return factory


@pytest.fixture(name="test_user")
def test_user_fixture(session: Session):
    return make_account(session, "user@example.com", approval_status=ApprovalStatus.APPROVED)

@pytest.fixture(name="pending_user")
def pending_user_fixture(session: Session):
    return make_account(session, "pending@example.com")

@pytest.fixture(name="disabled_user")
def disabled_user_fixture(session: Session):
    return make_account(
        session,
        "disabled@example.com",
        approval_status=ApprovalStatus.APPROVED,
        is_disabled=True
    )

@pytest.fixture(name="admin_user")
def admin_user_fixture(session: Session):
    return make_account(
        session,
        "admin@example.com",
        approval_status=ApprovalStatus.APPROVED,
        is_admin=True
    )
