"""Edits to a request's own fields, recorded in the history at the current status."""
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple, TypeVar

from app.requests.domain.errors import InvalidTransition, QuantityOutOfRange, ValidationFailed
from app.requests.domain.ledger import append_history
from app.requests.domain.models import (
    HistoryEntry,
    JigRequest,
    ProductionRequest,
    ProductionRequestType,
    RequestKind,
    WorkRequest,
)
from app.requests.domain.workflow import is_terminal

RequestT = TypeVar("RequestT", bound=WorkRequest)

EDIT_REASONS = {
    RequestKind.JIG: "사용자에 의해 수정됨",
    RequestKind.PRODUCTION: "요청 내용 수정됨",
    RequestKind.SAMPLE: "요청 내용 수정됨",
}

# Closed production requests are no longer editable.
LOCKED_WHEN_CLOSED = {RequestKind.PRODUCTION}


def revise_request(
    request: RequestT,
    user_name: str,
    timestamp: datetime,
    requester: Optional[str] = None,
    quantity: Optional[int] = None,
    details: Optional[Mapping[str, Any]] = None,
    unit_price: Optional[float] = None,
    core_cost: Optional[float] = None,
    request_type: Optional[ProductionRequestType] = None,
) -> Tuple[RequestT, HistoryEntry]:
    """Apply the given field changes and append a same-status history entry.

    Fields left as None keep their current value. Price fields apply to jig
    requests only and ``request_type`` to production requests only.
    """
    if request.kind in LOCKED_WHEN_CLOSED and is_terminal(request.kind, request.status):
        raise InvalidTransition("완료되거나 반려된 요청은 수정할 수 없습니다")

    changes: Dict[str, Any] = {}
    if requester is not None:
        if not requester.strip():
            raise ValidationFailed("요청자를 입력해주세요")
        changes["requester"] = requester.strip()
    if quantity is not None:
        if quantity < 0:
            raise ValidationFailed("수량은 0 이상이어야 합니다")
        if isinstance(request, JigRequest) and quantity < request.received_quantity:
            raise QuantityOutOfRange(
                f"수량은 이미 입고된 수량보다 적을 수 없습니다 (입고 {request.received_quantity}개)"
            )
        changes["quantity"] = quantity
    if details is not None:
        changes["details"] = dict(details)

    if isinstance(request, JigRequest):
        if unit_price is not None:
            changes["unit_price"] = unit_price
        if core_cost is not None:
            changes["core_cost"] = core_cost
    elif isinstance(request, ProductionRequest) and request_type is not None:
        changes["request_type"] = request_type

    if not changes:
        raise ValidationFailed("수정할 내용이 없습니다")

    return append_history(
        replace(request, **changes),
        request.status,
        user_name,
        timestamp,
        reason=EDIT_REASONS[request.kind],
    )
