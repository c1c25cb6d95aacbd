import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from splitlog.db.core import enable_sqlite_transactions, get_session
from splitlog.main import app
from splitlog.models import models
from splitlog.security import create_access_token


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    enable_sqlite_transactions(engine)
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def sent_mail(monkeypatch):
    """Invitation mails delivered after commit, captured instead of sent."""
    sent = []

    def fake_send(invitation):
        sent.append(invitation)
        return True

    monkeypatch.setattr(models, "send_trip_invitation", fake_send)
    return sent


@pytest.fixture
def client(engine, sent_mail):
    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(email: str, name: str | None = None) -> dict:
    data = {"sub": email}
    if name:
        data["name"] = name
    return {"Authorization": f"Bearer {create_access_token(data)}"}


@pytest.fixture
def alice():
    return auth("alice@example.com", "Alice")


@pytest.fixture
def bob():
    return auth("bob@example.com", "Bob")


@pytest.fixture
def carol():
    return auth("carol@example.com", "Carol")
