"""Recognition of the echo of this process's own remote writes.

Every outgoing progress write carries a fresh token under
``WRITE_TOKEN_FIELD``.  When the live listener later reports a value
carrying a token this process issued, the value is its own write coming
back and is ignored.  Unlike a fixed suppression window, a slow echo is
still recognised, and a genuine remote change arriving right after a
save is never suppressed.
"""

from __future__ import annotations

import logging
import uuid
from collections import deque
from typing import Any

logger = logging.getLogger(__name__)

WRITE_TOKEN_FIELD = "writeToken"


class SelfWriteGuard:
    """Issue write tokens and match echoed payloads against them.

    Args:
        history: Number of recent tokens remembered.  Older echoes are
            superseded by newer writes anyway.
    """

    def __init__(self, history: int = 32) -> None:
        self._issued: deque[str] = deque(maxlen=history)

    def issue(self) -> str:
        """Return a new token to attach to an outgoing write."""
        token = uuid.uuid4().hex
        self._issued.append(token)
        return token

    def forget(self, token: str) -> None:
        """Drop a token whose write failed."""
        try:
            self._issued.remove(token)
        except ValueError:
            pass

    def is_own_echo(self, payload: Any) -> bool:
        """True if *payload* carries a token issued by this guard."""
        if not isinstance(payload, dict):
            return False
        token = payload.get(WRITE_TOKEN_FIELD)
        return isinstance(token, str) and token in self._issued
