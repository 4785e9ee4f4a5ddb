import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Sequence

from app.requests.application.locks import RequestLocks
from app.requests.application.ports import WorkRequestRepository
from app.requests.domain.comments import add_comment, mark_all_read
from app.requests.domain.errors import (
    InvalidTransition,
    NotFound,
    PermissionDenied,
    ValidationFailed,
)
from app.requests.domain.fulfillment import (
    apply_quantity_change,
    change_reason,
    implied_status,
)
from app.requests.domain.ledger import append_history
from app.requests.domain.revisions import revise_request
from app.requests.domain.models import (
    REQUEST_TYPES,
    Actor,
    Comment,
    JigRequest,
    JigStatus,
    ProductionRequestType,
    RequestFilters,
    RequestKind,
    Role,
    SampleRequest,
    WorkRequest,
    parse_status,
)
from app.requests.domain.workflow import CREATED_REASON, INITIAL_STATUS, transition

logger = logging.getLogger(__name__)

IdGenerator = Callable[[], str]
Clock = Callable[[], datetime]

CREATE_ROLES = {
    RequestKind.JIG: Role.MANAGER,
    RequestKind.PRODUCTION: Role.MEMBER,
    RequestKind.SAMPLE: Role.MEMBER,
}
COMMENT_ROLES = {
    RequestKind.JIG: Role.MANAGER,
    RequestKind.PRODUCTION: Role.MANAGER,
    RequestKind.SAMPLE: Role.MANAGER,
}
FULFILLMENT_ROLE = Role.MANAGER
EDIT_ROLE = Role.MANAGER
WORK_DATA_ROLE = Role.MANAGER
DELETE_ROLE = Role.ADMIN

FULFILLMENT_STATUSES = {JigStatus.IN_PROGRESS, JigStatus.RECEIVING}


@dataclass(frozen=True)
class CreateWorkRequestCommand:
    kind: RequestKind
    requester: str
    quantity: int
    details: Mapping[str, Any] = field(default_factory=dict)
    unit_price: Optional[float] = None
    core_cost: Optional[float] = None
    request_type: Optional[ProductionRequestType] = None
    work_data: Optional[Mapping[str, Any]] = None


@dataclass(frozen=True)
class UpdateStatusCommand:
    kind: RequestKind
    request_id: str
    status: str
    reason: Optional[str] = None


@dataclass(frozen=True)
class UpdateRequestDetailsCommand:
    kind: RequestKind
    request_id: str
    requester: Optional[str] = None
    quantity: Optional[int] = None
    details: Optional[Mapping[str, Any]] = None
    unit_price: Optional[float] = None
    core_cost: Optional[float] = None
    request_type: Optional[ProductionRequestType] = None


@dataclass(frozen=True)
class ReceiveOrReturnCommand:
    request_id: str
    quantity_change: int


@dataclass(frozen=True)
class AddCommentCommand:
    kind: RequestKind
    request_id: str
    text: str


@dataclass(frozen=True)
class MarkCommentsReadCommand:
    kind: RequestKind
    request_id: str
    user_id: str


@dataclass(frozen=True)
class UpdateWorkDataCommand:
    request_id: str
    work_data: Mapping[str, Any]


@dataclass(frozen=True)
class ListWorkRequestsQuery:
    kind: RequestKind
    status: Optional[str] = None
    requester: Optional[str] = None
    limit: int = 50
    offset: int = 0


def _require_role(actor: Actor, required: Role, message: str) -> None:
    if not actor.role.at_least(required):
        raise PermissionDenied(message)


class _WorkRequestUseCase:
    def __init__(
        self,
        repository: WorkRequestRepository,
        clock: Clock,
        locks: Optional[RequestLocks] = None,
    ) -> None:
        self._repository = repository
        self._clock = clock
        self._locks = locks if locks is not None else RequestLocks()

    async def _load(self, kind: RequestKind, request_id: str) -> WorkRequest:
        request = await self._repository.load_request(kind, request_id)
        if request is None:
            raise NotFound("요청을 찾을 수 없습니다")
        return request

    async def _persist(self, request: WorkRequest) -> WorkRequest:
        try:
            saved = await self._repository.save_request(request)
            await self._repository.commit()
        except Exception:
            await self._repository.rollback()
            raise
        return saved


class CreateWorkRequestUseCase:
    def __init__(
        self,
        repository: WorkRequestRepository,
        clock: Clock,
    ) -> None:
        self._repository = repository
        self._clock = clock

    async def execute(
        self,
        command: CreateWorkRequestCommand,
        current_user: Actor,
    ) -> WorkRequest:
        _require_role(
            current_user,
            CREATE_ROLES[command.kind],
            "신규 요청을 생성할 권한이 없습니다",
        )

        if not command.requester or not command.requester.strip():
            raise ValidationFailed("요청자를 입력해주세요")
        if command.quantity < 0:
            raise ValidationFailed("수량은 0 이상이어야 합니다")

        now = self._clock()
        extra: dict = {}
        if command.kind == RequestKind.JIG:
            extra = {"unit_price": command.unit_price, "core_cost": command.core_cost}
        elif command.kind == RequestKind.PRODUCTION and command.request_type is not None:
            extra = {"request_type": command.request_type}
        elif command.kind == RequestKind.SAMPLE:
            extra = {"work_data": dict(command.work_data or {})}

        try:
            request_id = await self._repository.next_request_id(command.kind, now)
            draft = REQUEST_TYPES[command.kind](
                id=request_id,
                status=INITIAL_STATUS[command.kind],
                requester=command.requester.strip(),
                author_id=current_user.id,
                author_name=current_user.name,
                quantity=command.quantity,
                created_at=now,
                details=dict(command.details),
                **extra,
            )
            request, _ = append_history(
                draft,
                INITIAL_STATUS[command.kind],
                current_user.name,
                now,
                reason=CREATED_REASON,
            )
            await self._repository.add_request(request)
            await self._repository.commit()
        except Exception:
            await self._repository.rollback()
            raise

        logger.info(
            "Created %s request %s for %s", command.kind.value, request.id, current_user.name
        )
        return request


class GetWorkRequestUseCase(_WorkRequestUseCase):
    async def execute(self, kind: RequestKind, request_id: str) -> WorkRequest:
        return await self._load(kind, request_id)


class ListWorkRequestsUseCase:
    def __init__(
        self,
        repository: WorkRequestRepository,
        max_limit: int = 200,
    ) -> None:
        self._repository = repository
        self._max_limit = max_limit

    async def execute(self, query: ListWorkRequestsQuery) -> Sequence[WorkRequest]:
        if query.status is not None:
            try:
                parse_status(query.kind, query.status)
            except ValueError:
                raise ValidationFailed("알 수 없는 상태입니다") from None

        limit = max(1, min(query.limit, self._max_limit))
        offset = max(0, query.offset)
        filters = RequestFilters(
            kind=query.kind,
            status=query.status,
            requester=query.requester,
            limit=limit,
            offset=offset,
        )
        return await self._repository.list_requests(filters)


class UpdateStatusUseCase(_WorkRequestUseCase):
    async def execute(
        self,
        command: UpdateStatusCommand,
        current_user: Actor,
    ) -> WorkRequest:
        try:
            target = parse_status(command.kind, command.status)
        except ValueError:
            raise ValidationFailed("알 수 없는 상태입니다") from None

        async with self._locks.hold(command.kind, command.request_id):
            request = await self._load(command.kind, command.request_id)
            updated, entry = transition(
                request, target, current_user, self._clock(), reason=command.reason
            )
            saved = await self._persist(updated)

        logger.info(
            "Request %s moved to %s by %s (%s)",
            saved.id,
            entry.status,
            entry.user,
            entry.reason,
        )
        return saved


class UpdateRequestDetailsUseCase(_WorkRequestUseCase):
    async def execute(
        self,
        command: UpdateRequestDetailsCommand,
        current_user: Actor,
    ) -> WorkRequest:
        _require_role(current_user, EDIT_ROLE, "요청을 수정할 권한이 없습니다")

        async with self._locks.hold(command.kind, command.request_id):
            request = await self._load(command.kind, command.request_id)
            updated, _ = revise_request(
                request,
                current_user.name,
                self._clock(),
                requester=command.requester,
                quantity=command.quantity,
                details=command.details,
                unit_price=command.unit_price,
                core_cost=command.core_cost,
                request_type=command.request_type,
            )
            saved = await self._persist(updated)

        logger.info("Request %s edited by %s", saved.id, current_user.name)
        return saved


class ReceiveOrReturnUseCase(_WorkRequestUseCase):
    async def execute(
        self,
        command: ReceiveOrReturnCommand,
        current_user: Actor,
    ) -> JigRequest:
        _require_role(current_user, FULFILLMENT_ROLE, "입고/반출을 처리할 권한이 없습니다")

        async with self._locks.hold(RequestKind.JIG, command.request_id):
            request = await self._load(RequestKind.JIG, command.request_id)
            if request.status not in FULFILLMENT_STATUSES:
                raise InvalidTransition("진행중인 요청만 입고/반출할 수 있습니다")

            changed = apply_quantity_change(request, command.quantity_change)
            reason = change_reason(changed, command.quantity_change)
            updated, _ = append_history(
                changed,
                implied_status(changed),
                current_user.name,
                self._clock(),
                reason=reason,
            )
            saved = await self._persist(updated)

        logger.info("Request %s: %s", saved.id, reason)
        return saved


class AddCommentUseCase(_WorkRequestUseCase):
    def __init__(
        self,
        repository: WorkRequestRepository,
        id_generator: IdGenerator,
        clock: Clock,
        locks: Optional[RequestLocks] = None,
    ) -> None:
        super().__init__(repository, clock, locks)
        self._id_generator = id_generator

    async def execute(
        self,
        command: AddCommentCommand,
        current_user: Actor,
    ) -> Comment:
        can_comment = current_user.role.at_least(COMMENT_ROLES[command.kind])

        async with self._locks.hold(command.kind, command.request_id):
            request = await self._load(command.kind, command.request_id)
            updated, comment = add_comment(
                request,
                comment_id=self._id_generator(),
                author_name=current_user.name,
                text=command.text,
                created_at=self._clock(),
                can_comment=can_comment,
            )
            await self._persist(updated)

        logger.info("Comment %s added to request %s", comment.id, command.request_id)
        return comment


class MarkCommentsReadUseCase(_WorkRequestUseCase):
    async def execute(self, command: MarkCommentsReadCommand) -> None:
        async with self._locks.hold(command.kind, command.request_id):
            request = await self._load(command.kind, command.request_id)
            updated = mark_all_read(request, command.user_id)
            if updated is not request:
                await self._persist(updated)


class UpdateWorkDataUseCase(_WorkRequestUseCase):
    async def execute(
        self,
        command: UpdateWorkDataCommand,
        current_user: Actor,
    ) -> SampleRequest:
        _require_role(current_user, WORK_DATA_ROLE, "작업 데이터를 수정할 권한이 없습니다")

        async with self._locks.hold(RequestKind.SAMPLE, command.request_id):
            request = await self._load(RequestKind.SAMPLE, command.request_id)
            saved = await self._persist(replace(request, work_data=dict(command.work_data)))

        logger.info("Work data updated on request %s by %s", saved.id, current_user.name)
        return saved


class DeleteWorkRequestUseCase(_WorkRequestUseCase):
    async def execute(
        self,
        kind: RequestKind,
        request_id: str,
        current_user: Actor,
    ) -> None:
        _require_role(current_user, DELETE_ROLE, "삭제 권한이 없습니다")

        async with self._locks.hold(kind, request_id):
            try:
                deleted = await self._repository.delete_request(kind, request_id)
                if not deleted:
                    raise NotFound("요청을 찾을 수 없습니다")
                await self._repository.commit()
            except Exception:
                await self._repository.rollback()
                raise

        logger.info("Request %s deleted by %s", request_id, current_user.name)
