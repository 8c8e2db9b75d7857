import logging
import secrets
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Union
from sqlalchemy import delete, insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from ticket_classifier.core.config import settings
from ticket_classifier.core.errors import ConflictError, InternalError
from ticket_classifier.core.log_config import mask_nonce
from ticket_classifier.models.nonce import UsedNonce

logger = logging.getLogger(__name__)

TTL = Union[int, float, timedelta]


class NonceResult(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


def _as_timedelta(ttl: Optional[TTL]) -> timedelta:
    if ttl is None:
        return timedelta(seconds=settings.NONCE_TTL_SECONDS)
    if isinstance(ttl, timedelta):
        return ttl
    return timedelta(seconds=ttl)


class NonceService:
    """
    Single-use token store backed by the ``used_nonces`` table.

    Correctness rests on the primary key of ``nonce``: the insert either
    succeeds (first use) or violates the constraint (replay). There is no
    read-before-write, so concurrent requests cannot both pass.
    """

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def generate() -> str:
        return secrets.token_hex(16)

    def record_if_unused(self, nonce: str, ttl: Optional[TTL] = None, now: Optional[datetime] = None) -> NonceResult:
        now = now or datetime.utcnow()
        try:
            self.db.execute(
                insert(UsedNonce).values(nonce=nonce, used_at=now, expires_at=now + _as_timedelta(ttl))
            )
            self.db.commit()
        except IntegrityError:
            # Expired rows still count until the sweep removes them
            self.db.rollback()
            logger.warning("Nonce replay detected: %s", mask_nonce(nonce))
            return NonceResult.REJECTED
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to record nonce %s", mask_nonce(nonce))
            raise InternalError("Failed to record nonce") from e

        return NonceResult.ACCEPTED

    def consume(self, nonce: str, ttl: Optional[TTL] = None) -> None:
        if self.record_if_unused(nonce, ttl) is NonceResult.REJECTED:
            raise ConflictError("Nonce already used")

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.utcnow()
        try:
            result = self.db.execute(delete(UsedNonce).where(UsedNonce.expires_at < now))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Expired nonce cleanup failed")
            raise InternalError("Failed to purge expired nonces") from e

        deleted = result.rowcount or 0
        logger.info("Purged %d expired nonces", deleted)
        return deleted

    def is_expired(self, nonce: str, now: Optional[datetime] = None) -> bool:
        used = self.db.get(UsedNonce, nonce)
        if used is None:
            return False
        return used.is_expired(now)
