"""
Keeps at most one in-flight request per logical name.

Acquiring a name that is already pending cancels the earlier request's
token before handing out a new one, so the most recent request wins.
"""

import asyncio
import threading
from typing import Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


class CancellationToken:
    """Cooperative cancellation signal for one in-flight request."""

    def __init__(self, name: str):
        self.name = name
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        self._event.set()

    async def wait(self):
        await self._event.wait()

    def __repr__(self) -> str:
        return f"CancellationToken(name={self.name!r}, cancelled={self.cancelled})"


class RequestCoordinator:
    def __init__(self):
        self._pending: Dict[str, CancellationToken] = {}
        self._lock = threading.Lock()

    def acquire(self, name: Optional[str]) -> Optional[CancellationToken]:
        """Register a fresh token for name, cancelling any previous one."""
        if not name:
            return None

        token = CancellationToken(name)
        with self._lock:
            previous = self._pending.pop(name, None)
            self._pending[name] = token

        if previous is not None:
            previous.cancel()
            logger.info("request_superseded", name=name)

        return token

    def release(self, name: Optional[str], token: CancellationToken = None) -> bool:
        """Drop the slot for name.

        With a token, the slot is only dropped while it still belongs to
        that token; a superseded request must not evict its successor.
        Returns False only when the slot belongs to another request.
        """
        if not name:
            return True

        with self._lock:
            current = self._pending.get(name)
            if current is None:
                return True
            if token is not None and current is not token:
                return False
            del self._pending[name]
            return True

    def is_pending(self, name: str) -> bool:
        with self._lock:
            return name in self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
