import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from sqlalchemy import delete, desc, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.requests.application.ports import StorageConflict, WorkRequestRepository
from app.requests.domain.models import (
    Comment,
    HistoryEntry,
    JigRequest,
    ProductionRequest,
    ProductionRequestType,
    RequestFilters,
    RequestKind,
    SampleRequest,
    WorkRequest,
    format_request_id,
    parse_status,
)
from database import RequestCounter, WorkRequestRecord

logger = logging.getLogger(__name__)


def _history_to_json(entry: HistoryEntry) -> Dict[str, Any]:
    return {
        "status": entry.status,
        "date": entry.timestamp.isoformat(),
        "user": entry.user,
        "reason": entry.reason,
    }


def _history_from_json(data: Dict[str, Any]) -> HistoryEntry:
    return HistoryEntry(
        status=data["status"],
        timestamp=datetime.fromisoformat(data["date"]),
        user=data["user"],
        reason=data.get("reason"),
    )


def _comment_to_json(comment: Comment) -> Dict[str, Any]:
    return {
        "id": comment.id,
        "user": comment.user,
        "date": comment.created_at.isoformat(),
        "text": comment.text,
        "read_by": sorted(comment.read_by),
    }


def _comment_from_json(data: Dict[str, Any]) -> Comment:
    return Comment(
        id=data["id"],
        user=data["user"],
        text=data["text"],
        created_at=datetime.fromisoformat(data["date"]),
        read_by=frozenset(data.get("read_by") or ()),
    )


def _to_row(request: WorkRequest) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "status": request.status.value,
        "requester": request.requester,
        "author_id": request.author_id,
        "author_name": request.author_name,
        "quantity": request.quantity,
        "details": dict(request.details),
        "history": [_history_to_json(entry) for entry in request.history],
        "comments": [_comment_to_json(comment) for comment in request.comments],
    }
    if isinstance(request, JigRequest):
        row["received_quantity"] = request.received_quantity
        row["unit_price"] = request.unit_price
        row["core_cost"] = request.core_cost
    elif isinstance(request, ProductionRequest):
        row["request_type"] = request.request_type.value
    elif isinstance(request, SampleRequest):
        row["work_data"] = dict(request.work_data)
    return row


def _from_record(record: WorkRequestRecord) -> WorkRequest:
    kind = RequestKind(record.kind)
    common: Dict[str, Any] = dict(
        id=record.id,
        status=parse_status(kind, record.status),
        requester=record.requester,
        author_id=record.author_id,
        author_name=record.author_name,
        quantity=record.quantity,
        created_at=record.created_at,
        history=tuple(_history_from_json(item) for item in record.history or []),
        comments=tuple(_comment_from_json(item) for item in record.comments or []),
        details=dict(record.details or {}),
        version=record.version,
    )
    if kind == RequestKind.JIG:
        return JigRequest(
            **common,
            received_quantity=record.received_quantity or 0,
            unit_price=record.unit_price,
            core_cost=record.core_cost,
        )
    if kind == RequestKind.PRODUCTION:
        return ProductionRequest(
            **common,
            request_type=ProductionRequestType(record.request_type or ProductionRequestType.URGENT.value),
        )
    return SampleRequest(**common, work_data=dict(record.work_data or {}))


class SqlAlchemyWorkRequestRepository(WorkRequestRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def load_request(
        self, kind: RequestKind, request_id: str
    ) -> Optional[WorkRequest]:
        result = await self._session.execute(
            select(WorkRequestRecord).where(
                WorkRequestRecord.id == request_id,
                WorkRequestRecord.kind == kind.value,
            )
        )
        record = result.scalar_one_or_none()
        if record is None:
            return None
        return _from_record(record)

    async def save_request(self, request: WorkRequest) -> WorkRequest:
        result = await self._session.execute(
            update(WorkRequestRecord)
            .where(
                WorkRequestRecord.id == request.id,
                WorkRequestRecord.kind == request.kind.value,
                WorkRequestRecord.version == request.version,
            )
            .values(
                **_to_row(request),
                version=request.version + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "Version conflict saving %s request %s (expected version %s)",
                request.kind.value,
                request.id,
                request.version,
            )
            raise StorageConflict(f"request {request.id} was modified concurrently")
        return replace(request, version=request.version + 1)

    async def add_request(self, request: WorkRequest) -> None:
        record = WorkRequestRecord(
            id=request.id,
            kind=request.kind.value,
            created_at=request.created_at,
            updated_at=request.created_at,
            version=request.version,
            **_to_row(request),
        )
        self._session.add(record)

    async def delete_request(self, kind: RequestKind, request_id: str) -> bool:
        result = await self._session.execute(
            delete(WorkRequestRecord).where(
                WorkRequestRecord.id == request_id,
                WorkRequestRecord.kind == kind.value,
            )
        )
        return result.rowcount > 0

    async def next_request_id(self, kind: RequestKind, now: datetime) -> str:
        result = await self._session.execute(
            select(RequestCounter)
            .where(RequestCounter.name == kind.value)
            .with_for_update()
        )
        counter = result.scalar_one_or_none()
        if counter is None:
            counter = RequestCounter(name=kind.value, count=0)
            self._session.add(counter)
        counter.count += 1
        try:
            await self._session.flush()
        except IntegrityError as exc:
            # another transaction created the counter row first
            logger.warning("Counter row for %s created concurrently", kind.value)
            raise StorageConflict(f"{kind.value} request counter was created concurrently") from exc
        return format_request_id(kind, counter.count, now)

    async def list_requests(self, filters: RequestFilters) -> Sequence[WorkRequest]:
        query = select(WorkRequestRecord).where(WorkRequestRecord.kind == filters.kind.value)

        if filters.status:
            query = query.where(WorkRequestRecord.status == filters.status)
        if filters.requester:
            query = query.where(WorkRequestRecord.requester == filters.requester)

        query = query.order_by(desc(WorkRequestRecord.created_at))
        query = query.limit(filters.limit).offset(filters.offset)

        result = await self._session.execute(query)
        return [_from_record(record) for record in result.scalars().all()]

    async def commit(self) -> None:
        try:
            await self._session.commit()
        except IntegrityError as exc:
            logger.warning("Commit rejected by a unique constraint: %s", exc.orig)
            raise StorageConflict("request was written concurrently") from exc

    async def rollback(self) -> None:
        await self._session.rollback()
