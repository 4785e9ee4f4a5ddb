"""Received-vs-ordered quantity tracking for jig requests."""
from dataclasses import replace

from app.requests.domain.errors import QuantityOutOfRange, ValidationFailed
from app.requests.domain.models import FulfillmentState, JigRequest, JigStatus

BILLABLE_PARTIAL = {JigStatus.IN_PROGRESS, JigStatus.RECEIVING}


def apply_quantity_change(request: JigRequest, delta: int) -> JigRequest:
    """Receive (delta > 0) or return (delta < 0) stock against the order.

    Does not touch the history; status follow-up is decided by the caller.
    """
    if delta == 0:
        raise ValidationFailed("입고/반출 수량은 0이 될 수 없습니다")

    received = request.received_quantity + delta
    if received < 0:
        raise QuantityOutOfRange(
            f"반출 수량이 보유 수량을 초과합니다 (보유 {request.received_quantity}개)"
        )
    if received > request.quantity:
        raise QuantityOutOfRange(
            f"입고 수량이 발주 수량을 초과합니다 (총 {received}/{request.quantity})"
        )
    return replace(request, received_quantity=received)


def implied_status(request: JigRequest) -> JigStatus:
    if request.received_quantity >= request.quantity:
        return JigStatus.COMPLETED
    if request.received_quantity > 0:
        return JigStatus.RECEIVING
    return JigStatus.IN_PROGRESS


def amount_owed(request: JigRequest) -> float:
    unit_price = request.unit_price or 0
    core_cost = request.core_cost or 0
    if request.status in BILLABLE_PARTIAL:
        return request.received_quantity * unit_price
    if request.status == JigStatus.COMPLETED:
        return request.quantity * unit_price + core_cost
    return 0


def fulfillment_state(request: JigRequest) -> FulfillmentState:
    return FulfillmentState(
        received_quantity=request.received_quantity,
        remaining_quantity=request.quantity - request.received_quantity,
        amount=amount_owed(request),
    )


def change_reason(after: JigRequest, delta: int) -> str:
    total = f"(총 {after.received_quantity}/{after.quantity})"
    if delta > 0:
        if implied_status(after) == JigStatus.COMPLETED:
            return f"모든 품목 입고 완료. {total}"
        return f"수량 {delta}개 입고됨. {total}"
    return f"수량 {abs(delta)}개 반출됨. {total}"
