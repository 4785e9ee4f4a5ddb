from datetime import datetime
from typing import Optional, Protocol, Sequence

from app.requests.domain.models import RequestFilters, RequestKind, WorkRequest


class StorageConflict(Exception):
    """Raised by a repository when a save lost a concurrent update race."""


class WorkRequestRepository(Protocol):
    async def load_request(
        self, kind: RequestKind, request_id: str
    ) -> Optional[WorkRequest]:
        ...

    async def save_request(self, request: WorkRequest) -> WorkRequest:
        """Persist ``request`` if its stored version still equals ``request.version``.

        Returns the request carrying the new version; raises StorageConflict
        otherwise.
        """
        ...

    async def add_request(self, request: WorkRequest) -> None:
        ...

    async def delete_request(self, kind: RequestKind, request_id: str) -> bool:
        ...

    async def next_request_id(self, kind: RequestKind, now: datetime) -> str:
        ...

    async def list_requests(self, filters: RequestFilters) -> Sequence[WorkRequest]:
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...
