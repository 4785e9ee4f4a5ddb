"""Append-only status history attached to every work request."""
from dataclasses import replace
from datetime import datetime
from typing import Optional, Sequence, Tuple, TypeVar

from app.requests.domain.models import HistoryEntry, WorkRequest

RequestT = TypeVar("RequestT", bound=WorkRequest)


def append_history(
    request: RequestT,
    status,
    user_name: str,
    timestamp: datetime,
    reason: Optional[str] = None,
) -> Tuple[RequestT, HistoryEntry]:
    """Return a copy of ``request`` with one more history entry.

    The request status is moved to ``status`` in the same step, so the
    status always matches the last entry.
    """
    entry = HistoryEntry(
        status=status.value if hasattr(status, "value") else status,
        timestamp=timestamp,
        user=user_name,
        reason=reason,
    )
    updated = replace(
        request,
        status=status,
        history=tuple(request.history) + (entry,),
    )
    return updated, entry


def history_for(
    request: WorkRequest,
    status=None,
    user: Optional[str] = None,
) -> Sequence[HistoryEntry]:
    status_value = status.value if hasattr(status, "value") else status
    return [
        entry
        for entry in request.history
        if (status_value is None or entry.status == status_value)
        and (user is None or entry.user == user)
    ]
