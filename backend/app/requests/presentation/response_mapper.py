from typing import Any, Dict, Optional

from app.requests.domain.comments import is_unread, unread_count
from app.requests.domain.fulfillment import fulfillment_state
from app.requests.domain.models import (
    Actor,
    Comment,
    HistoryEntry,
    JigRequest,
    ProductionRequest,
    SampleRequest,
    WorkRequest,
    status_label,
)
from app.requests.domain.workflow import allowed_targets


def history_entry_to_response(entry: HistoryEntry) -> Dict[str, Any]:
    return {
        "status": entry.status,
        "status_label": status_label(entry.status),
        "date": entry.timestamp.isoformat(),
        "user": entry.user,
        "reason": entry.reason,
    }


def comment_to_response(comment: Comment, viewer_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": comment.id,
        "user": comment.user,
        "text": comment.text,
        "date": comment.created_at.isoformat(),
        "read_by": sorted(comment.read_by),
        "unread": is_unread(comment, viewer_id) if viewer_id else False,
    }


def work_request_to_response(
    request: WorkRequest,
    viewer_id: Optional[str] = None,
    actor: Optional[Actor] = None,
) -> Dict[str, Any]:
    response: Dict[str, Any] = {
        "id": request.id,
        "kind": request.kind.value,
        "status": request.status.value,
        "status_label": status_label(request.status),
        "requester": request.requester,
        "author": {"id": request.author_id, "name": request.author_name},
        "quantity": request.quantity,
        "details": dict(request.details),
        "history": [history_entry_to_response(entry) for entry in request.history],
        "comments": [comment_to_response(c, viewer_id) for c in request.comments],
        "unread_comments": unread_count(request, viewer_id) if viewer_id else 0,
        "version": request.version,
        "created_at": request.created_at.isoformat() if request.created_at else None,
    }

    if actor is not None:
        response["allowed_statuses"] = [
            target.value for target in allowed_targets(request.kind, request.status, actor)
        ]

    if isinstance(request, JigRequest):
        state = fulfillment_state(request)
        response["received_quantity"] = request.received_quantity
        response["unit_price"] = request.unit_price
        response["core_cost"] = request.core_cost
        response["fulfillment"] = {
            "received_quantity": state.received_quantity,
            "remaining_quantity": state.remaining_quantity,
            "amount": state.amount,
        }
    elif isinstance(request, ProductionRequest):
        response["request_type"] = request.request_type.value
    elif isinstance(request, SampleRequest):
        response["work_data"] = dict(request.work_data)

    return response
