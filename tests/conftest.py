import time
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from ticket_classifier.core.config import settings
from ticket_classifier.core.db import Base, get_db
from ticket_classifier.models import job, nonce  # noqa: F401
from ticket_classifier.services.nonces import NonceService
from ticket_classifier.services.signatures import SignatureService

# Setup a file-backed SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_ticket_classifier.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture(scope="function")
def db_session():
    # Create the tables
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        # Drop the tables after the test
        Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def client(db_session):
    from ticket_classifier.main import app

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

def signed_headers(payload, nonce=None, timestamp=None):
    """Security headers for a JSON payload, as an API client would send them."""
    nonce = nonce or NonceService.generate()
    timestamp = str(timestamp if timestamp is not None else int(time.time()))
    data = dict(payload)
    data["nonce"] = nonce
    data["timestamp"] = timestamp
    return {
        "X-HMAC-Signature": SignatureService(settings.HMAC_SECRET).generate(data),
        "X-Nonce": nonce,
        "X-Timestamp": timestamp,
    }

@pytest.fixture
def signed_post(client):
    def _post(url, payload):
        return client.post(url, json=payload, headers=signed_headers(payload))
    return _post

def raw_ticket(index, **overrides):
    ticket = {
        "issue_key": f"demo-{index:03d}",
        "summary": "cannot access dashboard after login",
        "description": "<p>The page loads but shows a <b>blank</b> screen.</p>",
        "reporter": " Jane.Smith@Example.com ",
    }
    ticket.update(overrides)
    return ticket
