import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Tuple

from app.requests.domain.models import RequestKind


class RequestLocks:
    """Serializes commands against the same request inside one process.

    Cross-process ordering is left to the repository's version check.
    """

    def __init__(self) -> None:
        self._locks: Dict[Tuple[RequestKind, str], asyncio.Lock] = {}
        self._waiters: Dict[Tuple[RequestKind, str], int] = {}

    @asynccontextmanager
    async def hold(self, kind: RequestKind, request_id: str) -> AsyncIterator[None]:
        key = (kind, request_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
