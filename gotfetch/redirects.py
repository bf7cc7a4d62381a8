"""
Manual re-issue of redirected POST requests.

httpx, like most transports, turns a POST into a GET when it follows a
301/302/303 on its own. When that happened the executor sends the original
method, headers and body again to the final location, one hop at a time,
within a per-chain budget.
"""

import threading
from typing import Dict, Hashable, Optional

import httpx
import structlog

logger = structlog.get_logger(__name__)

DEFAULT_MAX_REDIRECTS = 5

# Statuses on which httpx turns a POST into a GET. 307/308 keep method and body.
METHOD_CHANGING_STATUSES = frozenset({301, 302, 303})


class RedirectFollower:
    def __init__(self, max_redirects: int = DEFAULT_MAX_REDIRECTS):
        self.max_redirects = max_redirects
        self._hops: Dict[Hashable, int] = {}
        self._lock = threading.Lock()

    def should_follow(self, response: httpx.Response, method: str) -> bool:
        """True when httpx followed a redirect that demoted an original POST."""
        if str(method).upper() != 'POST':
            return False
        return any(hop.status_code in METHOD_CHANGING_STATUSES for hop in response.history)

    def next_hop(self, key: Hashable, max_redirects: int = None) -> Optional[int]:
        """Consume one hop for key; None once the budget is exhausted."""
        limit = self.max_redirects if max_redirects is None else max_redirects
        with self._lock:
            used = self._hops.get(key, 0)
            if used >= limit:
                logger.warning("redirect_budget_exceeded", chain=str(key), hops=used, max_redirects=limit)
                return None
            self._hops[key] = used + 1
            return used + 1

    def hops(self, key: Hashable) -> int:
        with self._lock:
            return self._hops.get(key, 0)

    def reset(self, key: Hashable):
        with self._lock:
            self._hops.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._hops)
