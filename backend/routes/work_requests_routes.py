"""
Work Request Routes
Jig, production and sample requests: lifecycle, fulfillment and comments
"""
from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import uuid

from database import get_postgres_session
from app.requests.application.locks import RequestLocks
from app.requests.application.ports import StorageConflict
from app.requests.application.use_cases import (
    AddCommentCommand,
    AddCommentUseCase,
    CreateWorkRequestCommand,
    CreateWorkRequestUseCase,
    DeleteWorkRequestUseCase,
    GetWorkRequestUseCase,
    ListWorkRequestsQuery,
    ListWorkRequestsUseCase,
    MarkCommentsReadCommand,
    MarkCommentsReadUseCase,
    ReceiveOrReturnCommand,
    ReceiveOrReturnUseCase,
    UpdateRequestDetailsCommand,
    UpdateRequestDetailsUseCase,
    UpdateStatusCommand,
    UpdateStatusUseCase,
    UpdateWorkDataCommand,
    UpdateWorkDataUseCase,
)
from app.requests.domain.errors import (
    DomainError,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    QuantityOutOfRange,
    ValidationFailed,
)
from app.requests.domain.ledger import history_for
from app.requests.domain.models import Actor, ProductionRequestType, RequestKind, parse_status
from app.requests.infrastructure.sqlalchemy_repository import (
    SqlAlchemyWorkRequestRepository,
)
from app.requests.presentation.response_mapper import (
    comment_to_response,
    history_entry_to_response,
    work_request_to_response,
)
from routes.auth_routes import get_current_actor

logger = logging.getLogger(__name__)

work_requests_router = APIRouter(prefix="/api/requests", tags=["Work Requests"])

# One registry per process so concurrent commands on a request queue up.
request_locks = RequestLocks()

ERROR_STATUS_CODES = {
    PermissionDenied: 403,
    NotFound: 404,
    InvalidTransition: 409,
    ValidationFailed: 400,
    QuantityOutOfRange: 400,
}


# ==================== PYDANTIC MODELS ====================

class WorkRequestCreate(BaseModel):
    requester: str
    quantity: int = 0
    details: Dict[str, Any] = Field(default_factory=dict)
    unit_price: Optional[float] = None
    core_cost: Optional[float] = None
    request_type: Optional[ProductionRequestType] = None
    work_data: Optional[Dict[str, Any]] = None


class StatusUpdate(BaseModel):
    status: str
    reason: Optional[str] = None


class QuantityChange(BaseModel):
    quantity_change: int


class CommentCreate(BaseModel):
    text: str


class WorkDataUpdate(BaseModel):
    work_data: Dict[str, Any]


class WorkRequestEdit(BaseModel):
    requester: Optional[str] = None
    quantity: Optional[int] = None
    details: Optional[Dict[str, Any]] = None
    unit_price: Optional[float] = None
    core_cost: Optional[float] = None
    request_type: Optional[ProductionRequestType] = None


# ==================== HELPER FUNCTIONS ====================

def get_work_request_repository(
    session: AsyncSession = Depends(get_postgres_session),
) -> SqlAlchemyWorkRequestRepository:
    return SqlAlchemyWorkRequestRepository(session)


def get_request_locks() -> RequestLocks:
    return request_locks


def new_id() -> str:
    return str(uuid.uuid4())


def to_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, StorageConflict):
        logger.warning(f"Concurrent update rejected: {exc}")
        return HTTPException(status_code=409, detail="다른 사용자가 먼저 변경했습니다. 다시 시도해주세요")
    status_code = ERROR_STATUS_CODES.get(type(exc), 400)
    logger.warning(f"{type(exc).__name__}: {exc.message}")
    return HTTPException(status_code=status_code, detail=exc.message)


# ==================== WORK REQUEST ROUTES ====================

@work_requests_router.post("/{kind}")
async def create_work_request(
    kind: RequestKind,
    request_data: WorkRequestCreate,
    current_actor: Actor = Depends(get_current_actor),
    repository: SqlAlchemyWorkRequestRepository = Depends(get_work_request_repository),
):
    """Create a new request in the kind's initial status"""
    use_case = CreateWorkRequestUseCase(repository=repository, clock=datetime.utcnow)
    command = CreateWorkRequestCommand(
        kind=kind,
        requester=request_data.requester,
        quantity=request_data.quantity,
        details=request_data.details,
        unit_price=request_data.unit_price,
        core_cost=request_data.core_cost,
        request_type=request_data.request_type,
        work_data=request_data.work_data,
    )
    try:
        request = await use_case.execute(command, current_actor)
    except (DomainError, StorageConflict) as exc:
        raise to_http_error(exc)

    return work_request_to_response(request, current_actor.id, actor=current_actor)


@work_requests_router.get("/{kind}")
async def list_work_requests(
    kind: RequestKind,
    status: Optional[str] = None,
    requester: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    current_actor: Actor = Depends(get_current_actor),
    repository: SqlAlchemyWorkRequestRepository = Depends(get_work_request_repository),
):
    """List requests of one kind, newest first"""
    use_case = ListWorkRequestsUseCase(repository)
    query = ListWorkRequestsQuery(
        kind=kind,
        status=status,
        requester=requester,
        limit=limit,
        offset=offset,
    )
    try:
        requests = await use_case.execute(query)
    except DomainError as exc:
        raise to_http_error(exc)

    return [work_request_to_response(req, current_actor.id) for req in requests]


@work_requests_router.get("/{kind}/{request_id}")
async def get_work_request(
    kind: RequestKind,
    request_id: str,
    current_actor: Actor = Depends(get_current_actor),
    repository: SqlAlchemyWorkRequestRepository = Depends(get_work_request_repository),
):
    """Get a single request with history, comments and derived totals"""
    use_case = GetWorkRequestUseCase(repository=repository, clock=datetime.utcnow)
    try:
        request = await use_case.execute(kind, request_id)
    except DomainError as exc:
        raise to_http_error(exc)

    return work_request_to_response(request, current_actor.id, actor=current_actor)


@work_requests_router.delete("/{kind}/{request_id}")
async def delete_work_request(
    kind: RequestKind,
    request_id: str,
    current_actor: Actor = Depends(get_current_actor),
    repository: SqlAlchemyWorkRequestRepository = Depends(get_work_request_repository),
    locks: RequestLocks = Depends(get_request_locks),
):
    """Delete a request - admin only"""
    use_case = DeleteWorkRequestUseCase(repository=repository, clock=datetime.utcnow, locks=locks)
    try:
        await use_case.execute(kind, request_id, current_actor)
    except (DomainError, StorageConflict) as exc:
        raise to_http_error(exc)

    return {"message": "요청이 삭제되었습니다", "id": request_id}


@work_requests_router.post("/{kind}/{request_id}/status")
async def update_work_request_status(
    kind: RequestKind,
    request_id: str,
    update_data: StatusUpdate,
    current_actor: Actor = Depends(get_current_actor),
    repository: SqlAlchemyWorkRequestRepository = Depends(get_work_request_repository),
    locks: RequestLocks = Depends(get_request_locks),
):
    """Move a request to another status"""
    use_case = UpdateStatusUseCase(repository=repository, clock=datetime.utcnow, locks=locks)
    command = UpdateStatusCommand(
        kind=kind,
        request_id=request_id,
        status=update_data.status,
        reason=update_data.reason,
    )
    try:
        request = await use_case.execute(command, current_actor)
    except (DomainError, StorageConflict) as exc:
        raise to_http_error(exc)

    return work_request_to_response(request, current_actor.id, actor=current_actor)


@work_requests_router.put("/{kind}/{request_id}")
async def edit_work_request(
    kind: RequestKind,
    request_id: str,
    edit_data: WorkRequestEdit,
    current_actor: Actor = Depends(get_current_actor),
    repository: SqlAlchemyWorkRequestRepository = Depends(get_work_request_repository),
    locks: RequestLocks = Depends(get_request_locks),
):
    """Edit the request's own fields; the status is kept and the edit is recorded"""
    use_case = UpdateRequestDetailsUseCase(repository=repository, clock=datetime.utcnow, locks=locks)
    command = UpdateRequestDetailsCommand(
        kind=kind,
        request_id=request_id,
        requester=edit_data.requester,
        quantity=edit_data.quantity,
        details=edit_data.details,
        unit_price=edit_data.unit_price,
        core_cost=edit_data.core_cost,
        request_type=edit_data.request_type,
    )
    try:
        request = await use_case.execute(command, current_actor)
    except (DomainError, StorageConflict) as exc:
        raise to_http_error(exc)

    return work_request_to_response(request, current_actor.id, actor=current_actor)


@work_requests_router.get("/{kind}/{request_id}/history")
async def get_work_request_history(
    kind: RequestKind,
    request_id: str,
    status: Optional[str] = None,
    user: Optional[str] = None,
    current_actor: Actor = Depends(get_current_actor),
    repository: SqlAlchemyWorkRequestRepository = Depends(get_work_request_repository),
):
    """History entries of a request, optionally filtered by status or user"""
    if status is not None:
        try:
            parse_status(kind, status)
        except ValueError:
            raise to_http_error(ValidationFailed("알 수 없는 상태입니다"))

    use_case = GetWorkRequestUseCase(repository=repository, clock=datetime.utcnow)
    try:
        request = await use_case.execute(kind, request_id)
    except DomainError as exc:
        raise to_http_error(exc)

    return [history_entry_to_response(entry) for entry in history_for(request, status=status, user=user)]


@work_requests_router.post("/jig/{request_id}/receipts")
async def receive_or_return(
    request_id: str,
    change: QuantityChange,
    current_actor: Actor = Depends(get_current_actor),
    repository: SqlAlchemyWorkRequestRepository = Depends(get_work_request_repository),
    locks: RequestLocks = Depends(get_request_locks),
):
    """Receive (positive) or return (negative) jig stock"""
    use_case = ReceiveOrReturnUseCase(repository=repository, clock=datetime.utcnow, locks=locks)
    command = ReceiveOrReturnCommand(request_id=request_id, quantity_change=change.quantity_change)
    try:
        request = await use_case.execute(command, current_actor)
    except (DomainError, StorageConflict) as exc:
        raise to_http_error(exc)

    return work_request_to_response(request, current_actor.id, actor=current_actor)


@work_requests_router.put("/sample/{request_id}/work-data")
async def update_work_data(
    request_id: str,
    update_data: WorkDataUpdate,
    current_actor: Actor = Depends(get_current_actor),
    repository: SqlAlchemyWorkRequestRepository = Depends(get_work_request_repository),
    locks: RequestLocks = Depends(get_request_locks),
):
    """Replace the work data recorded on a sample request"""
    use_case = UpdateWorkDataUseCase(repository=repository, clock=datetime.utcnow, locks=locks)
    command = UpdateWorkDataCommand(request_id=request_id, work_data=update_data.work_data)
    try:
        request = await use_case.execute(command, current_actor)
    except (DomainError, StorageConflict) as exc:
        raise to_http_error(exc)

    return work_request_to_response(request, current_actor.id, actor=current_actor)


@work_requests_router.post("/{kind}/{request_id}/comments")
async def add_work_request_comment(
    kind: RequestKind,
    request_id: str,
    comment_data: CommentCreate,
    current_actor: Actor = Depends(get_current_actor),
    repository: SqlAlchemyWorkRequestRepository = Depends(get_work_request_repository),
    locks: RequestLocks = Depends(get_request_locks),
):
    """Append a comment to the request's thread"""
    use_case = AddCommentUseCase(
        repository=repository,
        id_generator=new_id,
        clock=datetime.utcnow,
        locks=locks,
    )
    command = AddCommentCommand(kind=kind, request_id=request_id, text=comment_data.text)
    try:
        comment = await use_case.execute(command, current_actor)
    except (DomainError, StorageConflict) as exc:
        raise to_http_error(exc)

    return comment_to_response(comment, current_actor.id)


@work_requests_router.post("/{kind}/{request_id}/comments/read")
async def mark_comments_read(
    kind: RequestKind,
    request_id: str,
    current_actor: Actor = Depends(get_current_actor),
    repository: SqlAlchemyWorkRequestRepository = Depends(get_work_request_repository),
    locks: RequestLocks = Depends(get_request_locks),
):
    """Mark every comment on the request as read by the caller"""
    use_case = MarkCommentsReadUseCase(repository=repository, clock=datetime.utcnow, locks=locks)
    command = MarkCommentsReadCommand(kind=kind, request_id=request_id, user_id=current_actor.id)
    try:
        await use_case.execute(command)
    except (DomainError, StorageConflict) as exc:
        raise to_http_error(exc)

    return {"message": "댓글을 읽음 처리했습니다"}
