# src/timesync_client/token_store.py

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

from jose import JWTError, jwt

logger = logging.getLogger(__name__)


class TokenStore:
    """
    Persisted auth token plus the user record it was issued for.

    With a path the pair survives restarts as a small JSON file; without one it is memory-only.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path else None
        self.token: str = ""
        self.record: Optional[Dict[str, Any]] = None
        self._load()

    def _load(self) -> None:
        if not self._path or not self._path.exists():
            return
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("TokenStore: Ignoring unreadable token file %s: %s", self._path, e)
            return
        if isinstance(payload, dict):
            self.token = str(payload.get("token") or "")
            record = payload.get("record")
            self.record = record if isinstance(record, dict) else None

    @property
    def is_valid(self) -> bool:
        """True when a token is present and its `exp` claim lies in the future."""
        if not self.token:
            return False
        try:
            claims = jwt.get_unverified_claims(self.token)
        except JWTError:
            return False
        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            return False
        return exp > time.time()

    def save(self, token: str, record: Optional[Dict[str, Any]]) -> None:
        self.token = token
        self.record = record
        if self._path:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps({"token": token, "record": record}), encoding="utf-8"
            )

    def clear(self) -> None:
        self.token = ""
        self.record = None
        if self._path and self._path.exists():
            self._path.unlink()
