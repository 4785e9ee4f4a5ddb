"""Per-kind status transition tables and the transition algorithm.

Each table maps ``(current, target)`` to the minimum role allowed to take
the edge, whether a reason must be supplied, and the reason recorded when
none is given.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple, TypeVar

from app.requests.domain.errors import (
    InvalidTransition,
    PermissionDenied,
    ValidationFailed,
)
from app.requests.domain.ledger import append_history
from app.requests.domain.models import (
    Actor,
    HistoryEntry,
    JigStatus,
    ProductionStatus,
    RequestKind,
    Role,
    SampleStatus,
    WorkRequest,
    status_label,
)

RequestT = TypeVar("RequestT", bound=WorkRequest)

DEFAULT_REASON = "상태 업데이트됨"
CREATED_REASON = "생성됨"


@dataclass(frozen=True)
class TransitionRule:
    required_role: Role
    reason_required: bool = False
    default_reason: str = DEFAULT_REASON


def _needs_reason(role: Role) -> TransitionRule:
    return TransitionRule(role, reason_required=True)


_JIG_OPEN = (JigStatus.IN_PROGRESS, JigStatus.HOLD, JigStatus.RECEIVING)

JIG_TRANSITIONS: Dict[Tuple[JigStatus, JigStatus], TransitionRule] = {
    (JigStatus.REQUEST, JigStatus.IN_PROGRESS): TransitionRule(Role.ADMIN, default_reason="승인됨"),
    (JigStatus.REQUEST, JigStatus.HOLD): _needs_reason(Role.ADMIN),
    (JigStatus.REQUEST, JigStatus.REJECTED): _needs_reason(Role.ADMIN),
    (JigStatus.HOLD, JigStatus.IN_PROGRESS): TransitionRule(Role.MANAGER, default_reason="재개됨"),
}
for _current in _JIG_OPEN:
    JIG_TRANSITIONS[(_current, JigStatus.COMPLETED)] = TransitionRule(
        Role.MANAGER, default_reason="완료됨"
    )
    JIG_TRANSITIONS[(_current, JigStatus.REJECTED)] = _needs_reason(Role.MANAGER)
    if _current != JigStatus.HOLD:
        JIG_TRANSITIONS[(_current, JigStatus.HOLD)] = _needs_reason(Role.MANAGER)

PRODUCTION_TRANSITIONS: Dict[Tuple[ProductionStatus, ProductionStatus], TransitionRule] = {
    (ProductionStatus.REQUESTED, ProductionStatus.IN_PROGRESS): TransitionRule(
        Role.MANAGER, default_reason="접수됨"
    ),
    (ProductionStatus.REQUESTED, ProductionStatus.HOLD): _needs_reason(Role.MANAGER),
    (ProductionStatus.IN_PROGRESS, ProductionStatus.COMPLETED): TransitionRule(
        Role.MANAGER, default_reason="완료 처리됨"
    ),
    (ProductionStatus.REQUESTED, ProductionStatus.REJECTED): _needs_reason(Role.MANAGER),
    (ProductionStatus.IN_PROGRESS, ProductionStatus.REJECTED): _needs_reason(Role.MANAGER),
    (ProductionStatus.HOLD, ProductionStatus.REJECTED): _needs_reason(Role.MANAGER),
}

SAMPLE_TRANSITIONS: Dict[Tuple[SampleStatus, SampleStatus], TransitionRule] = {
    (SampleStatus.RECEIVED, SampleStatus.IN_PROGRESS): TransitionRule(
        Role.MANAGER, default_reason="진행 시작됨"
    ),
    (SampleStatus.IN_PROGRESS, SampleStatus.COMPLETED): TransitionRule(
        Role.MANAGER, default_reason="완료 처리됨"
    ),
    (SampleStatus.RECEIVED, SampleStatus.ON_HOLD): _needs_reason(Role.MANAGER),
    (SampleStatus.IN_PROGRESS, SampleStatus.ON_HOLD): _needs_reason(Role.MANAGER),
    (SampleStatus.RECEIVED, SampleStatus.REJECTED): _needs_reason(Role.MANAGER),
    (SampleStatus.IN_PROGRESS, SampleStatus.REJECTED): _needs_reason(Role.MANAGER),
    (SampleStatus.ON_HOLD, SampleStatus.IN_PROGRESS): TransitionRule(
        Role.MANAGER, default_reason="재개됨"
    ),
}

TRANSITIONS = {
    RequestKind.JIG: JIG_TRANSITIONS,
    RequestKind.PRODUCTION: PRODUCTION_TRANSITIONS,
    RequestKind.SAMPLE: SAMPLE_TRANSITIONS,
}

INITIAL_STATUS = {
    RequestKind.JIG: JigStatus.REQUEST,
    RequestKind.PRODUCTION: ProductionStatus.REQUESTED,
    RequestKind.SAMPLE: SampleStatus.RECEIVED,
}

TERMINAL_STATUSES = {
    RequestKind.JIG: {JigStatus.COMPLETED, JigStatus.REJECTED},
    RequestKind.PRODUCTION: {ProductionStatus.COMPLETED, ProductionStatus.REJECTED},
    RequestKind.SAMPLE: {SampleStatus.COMPLETED, SampleStatus.REJECTED},
}

# Lowest role that may drive any transition of the kind.
MIN_DRIVING_ROLE = {
    kind: min((rule.required_role for rule in table.values()), key=lambda role: role.rank)
    for kind, table in TRANSITIONS.items()
}


def is_terminal(kind: RequestKind, status) -> bool:
    return status in TERMINAL_STATUSES[kind]


def find_rule(kind: RequestKind, current, target) -> Optional[TransitionRule]:
    return TRANSITIONS[kind].get((current, target))


def allowed_targets(kind: RequestKind, current, actor: Actor):
    """Statuses the actor may move a request to from ``current``."""
    return [
        target
        for (source, target), rule in TRANSITIONS[kind].items()
        if source == current and actor.role.at_least(rule.required_role)
    ]


def check_transition(kind: RequestKind, current, target, actor: Actor) -> TransitionRule:
    if target == current:
        raise InvalidTransition(
            f"이미 '{status_label(current)}' 상태입니다"
        )

    rule = find_rule(kind, current, target)
    if rule is None:
        if not actor.role.at_least(MIN_DRIVING_ROLE[kind]):
            raise PermissionDenied("상태를 변경할 권한이 없습니다")
        if is_terminal(kind, current):
            raise InvalidTransition(
                f"'{status_label(current)}' 상태의 요청은 변경할 수 없습니다"
            )
        raise InvalidTransition(
            f"'{status_label(current)}'에서 '{status_label(target)}'(으)로 변경할 수 없습니다"
        )

    if not actor.role.at_least(rule.required_role):
        raise PermissionDenied("상태를 변경할 권한이 없습니다")
    return rule


def transition(
    request: RequestT,
    target,
    actor: Actor,
    timestamp: datetime,
    reason: Optional[str] = None,
) -> Tuple[RequestT, HistoryEntry]:
    """Move ``request`` to ``target`` and record the change.

    Checks run in order: no-op, role, declared edge, required reason.
    """
    rule = check_transition(request.kind, request.status, target, actor)

    cleaned = reason.strip() if reason else ""
    if rule.reason_required and not cleaned:
        raise ValidationFailed(f"'{status_label(target)}' 사유를 입력해주세요")

    return append_history(
        request,
        target,
        actor.name,
        timestamp,
        reason=cleaned or rule.default_reason,
    )
