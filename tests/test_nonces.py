from datetime import datetime, timedelta
import pytest
from ticket_classifier.core.errors import ConflictError
from ticket_classifier.models.nonce import UsedNonce
from ticket_classifier.services.nonces import NonceResult, NonceService
from conftest import TestingSessionLocal

NOW = datetime(2026, 1, 1, 12, 0, 0)


@pytest.fixture
def nonces(db_session):
    return NonceService(db_session)

def test_first_use_accepted_then_rejected(nonces, db_session):
    assert nonces.record_if_unused("abc123", ttl=3600, now=NOW) is NonceResult.ACCEPTED
    assert nonces.record_if_unused("abc123", ttl=3600, now=NOW) is NonceResult.REJECTED

    stored = db_session.get(UsedNonce, "abc123")
    assert stored.used_at == NOW
    assert stored.expires_at == NOW + timedelta(hours=1)

def test_replay_detected_across_sessions(db_session):
    first = NonceService(db_session)
    other_db = TestingSessionLocal()
    try:
        second = NonceService(other_db)

        assert first.record_if_unused("nonce-a") is NonceResult.ACCEPTED
        assert second.record_if_unused("nonce-b") is NonceResult.ACCEPTED
        assert second.record_if_unused("nonce-a") is NonceResult.REJECTED
        assert first.record_if_unused("nonce-b") is NonceResult.REJECTED
        assert first.record_if_unused("nonce-c") is NonceResult.ACCEPTED
    finally:
        other_db.close()

def test_expired_but_not_purged_still_rejected(nonces):
    assert nonces.record_if_unused("old", ttl=timedelta(seconds=1), now=NOW) is NonceResult.ACCEPTED

    assert nonces.is_expired("old", now=NOW + timedelta(seconds=5))
    assert nonces.record_if_unused("old", now=NOW + timedelta(seconds=5)) is NonceResult.REJECTED

def test_default_ttl_comes_from_settings(nonces, db_session, monkeypatch):
    from ticket_classifier.core.config import settings
    monkeypatch.setattr(settings, "NONCE_TTL_SECONDS", 120)

    nonces.record_if_unused("ttl", now=NOW)

    assert db_session.get(UsedNonce, "ttl").expires_at == NOW + timedelta(seconds=120)

def test_purge_expired_deletes_only_expired(nonces, db_session):
    nonces.record_if_unused("expired-1", ttl=60, now=NOW - timedelta(hours=2))
    nonces.record_if_unused("expired-2", ttl=60, now=NOW - timedelta(hours=3))
    nonces.record_if_unused("fresh", ttl=3600, now=NOW)

    assert nonces.purge_expired(now=NOW) == 2

    remaining = [n.nonce for n in db_session.query(UsedNonce).all()]
    assert remaining == ["fresh"]

def test_purge_expired_is_idempotent(nonces):
    nonces.record_if_unused("expired", ttl=60, now=NOW - timedelta(hours=2))

    assert nonces.purge_expired(now=NOW) == 1
    assert nonces.purge_expired(now=NOW) == 0

def test_purged_nonce_can_be_used_again(nonces):
    nonces.record_if_unused("recycled", ttl=60, now=NOW - timedelta(hours=2))
    nonces.purge_expired(now=NOW)

    assert nonces.record_if_unused("recycled", now=NOW) is NonceResult.ACCEPTED

def test_is_expired_unknown_nonce(nonces):
    assert nonces.is_expired("never-seen") is False

def test_consume_raises_conflict_on_replay(nonces):
    nonces.consume("once")

    with pytest.raises(ConflictError):
        nonces.consume("once")

def test_generate_returns_distinct_tokens():
    tokens = {NonceService.generate() for _ in range(50)}

    assert len(tokens) == 50
    assert all(len(token) == 32 for token in tokens)
