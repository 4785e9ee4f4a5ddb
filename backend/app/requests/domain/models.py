import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, FrozenSet, Mapping, Optional, Tuple


class Role(str, enum.Enum):
    MEMBER = "member"
    MANAGER = "manager"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def at_least(self, required: "Role") -> bool:
        return self.rank >= required.rank


_ROLE_RANK = {Role.MEMBER: 0, Role.MANAGER: 1, Role.ADMIN: 2}


class RequestKind(str, enum.Enum):
    JIG = "jig"
    PRODUCTION = "production"
    SAMPLE = "sample"


class JigStatus(str, enum.Enum):
    REQUEST = "request"
    IN_PROGRESS = "in_progress"
    HOLD = "hold"
    RECEIVING = "receiving"
    COMPLETED = "completed"
    REJECTED = "rejected"


class ProductionStatus(str, enum.Enum):
    REQUESTED = "requested"
    IN_PROGRESS = "in_progress"
    HOLD = "hold"
    COMPLETED = "completed"
    REJECTED = "rejected"


class SampleStatus(str, enum.Enum):
    RECEIVED = "received"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    REJECTED = "rejected"


class ProductionRequestType(str, enum.Enum):
    URGENT = "urgent"
    SHORTAGE = "shortage"
    SALES_URGENT = "sales_urgent"
    LOGISTICS_TRANSFER = "logistics_transfer"  # rendered separately, same workflow
    URGENT_SAMPLE = "urgent_sample"


STATUS_ENUMS = {
    RequestKind.JIG: JigStatus,
    RequestKind.PRODUCTION: ProductionStatus,
    RequestKind.SAMPLE: SampleStatus,
}

# Display labels keyed by status value; values are shared across kinds.
STATUS_LABELS = {
    "request": "요청",
    "requested": "요청",
    "received": "접수",
    "in_progress": "진행중",
    "receiving": "입고중",
    "hold": "보류",
    "on_hold": "보류",
    "completed": "완료",
    "rejected": "반려",
}


def status_label(status) -> str:
    value = getattr(status, "value", status)
    return STATUS_LABELS.get(value, value)


def parse_status(kind: RequestKind, value: str) -> enum.Enum:
    """Resolve a raw status value against the kind's status enum.

    Raises ValueError for values outside the kind's closed set.
    """
    return STATUS_ENUMS[kind](value)


@dataclass(frozen=True)
class Actor:
    id: str
    name: str
    role: Role


@dataclass(frozen=True)
class HistoryEntry:
    status: str
    timestamp: datetime
    user: str
    reason: Optional[str] = None


@dataclass(frozen=True)
class Comment:
    id: str
    user: str
    text: str
    created_at: datetime
    read_by: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class WorkRequest:
    id: str
    status: Any
    requester: str
    author_id: str
    author_name: str
    quantity: int
    created_at: datetime
    history: Tuple[HistoryEntry, ...] = ()
    comments: Tuple[Comment, ...] = ()
    details: Mapping[str, Any] = field(default_factory=dict)
    version: int = 0

    kind: ClassVar[RequestKind]


@dataclass(frozen=True)
class JigRequest(WorkRequest):
    kind: ClassVar[RequestKind] = RequestKind.JIG

    received_quantity: int = 0
    unit_price: Optional[float] = None
    core_cost: Optional[float] = None


@dataclass(frozen=True)
class ProductionRequest(WorkRequest):
    kind: ClassVar[RequestKind] = RequestKind.PRODUCTION

    request_type: ProductionRequestType = ProductionRequestType.URGENT


@dataclass(frozen=True)
class SampleRequest(WorkRequest):
    kind: ClassVar[RequestKind] = RequestKind.SAMPLE

    work_data: Mapping[str, Any] = field(default_factory=dict)


REQUEST_TYPES = {
    RequestKind.JIG: JigRequest,
    RequestKind.PRODUCTION: ProductionRequest,
    RequestKind.SAMPLE: SampleRequest,
}


@dataclass(frozen=True)
class FulfillmentState:
    received_quantity: int
    remaining_quantity: int
    amount: float


@dataclass(frozen=True)
class RequestFilters:
    kind: RequestKind
    status: Optional[str] = None
    requester: Optional[str] = None
    limit: int = 50
    offset: int = 0


def format_request_id(kind: RequestKind, seq: int, now: datetime) -> str:
    """Human-facing request number: T12, P-250801-004, S-20250801-004."""
    if kind == RequestKind.JIG:
        return f"T{seq}"
    if kind == RequestKind.PRODUCTION:
        return f"P-{now:%y%m%d}-{seq:03d}"
    return f"S-{now:%Y%m%d}-{seq:03d}"
