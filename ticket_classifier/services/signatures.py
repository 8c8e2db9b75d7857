import hashlib
import hmac
import json
from typing import Any, Mapping, Optional


class SignatureService:
    algorithm = "sha256"

    def __init__(self, secret: str):
        if not secret:
            raise RuntimeError("HMAC_SECRET is not configured")
        self._key = secret.encode("utf-8")

    def generate(self, data: Mapping[str, Any]) -> str:
        return hmac.new(self._key, self.prepare_data_string(data).encode("utf-8"), hashlib.sha256).hexdigest()

    def validate(self, data: Mapping[str, Any], signature: Optional[str]) -> bool:
        if not isinstance(signature, str):
            return False
        # compare_digest only accepts ASCII str; header values may carry any latin-1 byte
        expected = self.generate(data).encode("ascii")
        return hmac.compare_digest(expected, signature.encode("utf-8", "replace"))

    @staticmethod
    def prepare_data_string(data: Mapping[str, Any]) -> str:
        """``key=value`` pairs sorted by key and joined with ``|``."""
        parts = []
        for key in sorted(data):
            parts.append(f"{key}={_render(data[key])}")
        return "|".join(parts)


def _render(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else ""
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return str(value)
