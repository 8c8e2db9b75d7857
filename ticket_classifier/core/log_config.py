import logging
import sys
from typing import Optional
from ticket_classifier.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger once. Safe to call again; repeated calls
    only adjust the level.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))

    if not any(getattr(h, "_ticket_classifier", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handler._ticket_classifier = True
        root.addHandler(handler)


def mask_nonce(nonce: str) -> str:
    return f"{nonce[:8]}..." if nonce else ""
