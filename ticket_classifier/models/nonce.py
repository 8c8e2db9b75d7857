from datetime import datetime
from typing import Optional
from sqlalchemy import Column, String, DateTime
from ticket_classifier.core.db import Base

NONCE_MAX_LENGTH = 255


class UsedNonce(Base):
    """
    Single-use request token. The primary key on ``nonce`` is the replay
    guarantee; rows are never updated, only inserted and later purged.
    """
    __tablename__ = "used_nonces"

    nonce = Column(String(NONCE_MAX_LENGTH), primary_key=True)
    used_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False, index=True)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at < (now or datetime.utcnow())
