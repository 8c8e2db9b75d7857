import json
import logging
import time
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from ticket_classifier.core.config import settings
from ticket_classifier.core.db import get_db
from ticket_classifier.core.errors import ConflictError
from ticket_classifier.core.log_config import mask_nonce
from ticket_classifier.models.nonce import NONCE_MAX_LENGTH
from ticket_classifier.services.jobs import JobService
from ticket_classifier.services.nonces import NonceService
from ticket_classifier.services.signatures import SignatureService

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-HMAC-Signature"
NONCE_HEADER = "X-Nonce"
TIMESTAMP_HEADER = "X-Timestamp"


def get_job_service(db: Session = Depends(get_db)) -> JobService:
    return JobService(db)


def get_signature_service() -> SignatureService:
    return SignatureService(settings.HMAC_SECRET)


def check_security_bypass() -> bool:
    """
    True when the replay guard should be skipped. Refuses outright when the
    bypass is switched on in production.
    """
    if not settings.BYPASS_SECURITY:
        return False
    if settings.ENVIRONMENT == "production":
        logger.critical("SECURITY BYPASS IS ENABLED IN PRODUCTION")
        raise RuntimeError("BYPASS_SECURITY must not be enabled in production")
    return settings.ENVIRONMENT in ("local", "testing")


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": "Unauthorized", "message": message},
    )


async def verify_request_signature(
    request: Request,
    db: Session = Depends(get_db),
    signer: SignatureService = Depends(get_signature_service),
):
    """
    Replay guard for mutating routes: timestamp window, HMAC over the body
    plus nonce and timestamp, then single use of the nonce.
    """
    if check_security_bypass():
        logger.warning("Security bypass enabled (%s): %s", settings.ENVIRONMENT, request.url.path)
        return

    signature = request.headers.get(SIGNATURE_HEADER)
    nonce = request.headers.get(NONCE_HEADER)
    timestamp = request.headers.get(TIMESTAMP_HEADER)

    if not signature or not nonce or not timestamp:
        logger.warning(
            "Missing security headers on %s (signature=%s nonce=%s timestamp=%s)",
            request.url.path, bool(signature), bool(nonce), bool(timestamp),
        )
        raise _unauthorized(f"Missing required security headers: {SIGNATURE_HEADER}, {NONCE_HEADER}, {TIMESTAMP_HEADER}")

    if len(nonce) > NONCE_MAX_LENGTH:
        logger.warning("Oversized nonce on %s: %d characters", request.url.path, len(nonce))
        raise _unauthorized("Invalid or reused nonce - possible replay attack")

    try:
        age = abs(int(time.time()) - int(timestamp))
    except ValueError:
        raise _unauthorized("Request timestamp expired or invalid")
    if age > settings.HMAC_MAX_AGE_SECONDS:
        logger.warning("Request timestamp outside window on %s: %d seconds", request.url.path, age)
        raise _unauthorized("Request timestamp expired or invalid")

    body = await request.body()
    try:
        data = json.loads(body) if body else {}
    except ValueError:
        raise _unauthorized("Invalid HMAC signature")
    if not isinstance(data, dict):
        data = {"payload": data}
    data["nonce"] = nonce
    data["timestamp"] = timestamp

    if not signer.validate(data, signature):
        logger.warning("Invalid HMAC signature on %s %s", request.method, request.url.path)
        raise _unauthorized("Invalid HMAC signature")

    try:
        NonceService(db).consume(nonce, settings.NONCE_TTL_SECONDS)
    except ConflictError:
        logger.warning("Nonce replay on %s: %s", request.url.path, mask_nonce(nonce))
        raise _unauthorized("Invalid or reused nonce - possible replay attack")
