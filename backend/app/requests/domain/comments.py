"""Comment threads and per-user read tracking."""
from dataclasses import replace
from datetime import datetime
from typing import Tuple, TypeVar

from app.requests.domain.errors import PermissionDenied, ValidationFailed
from app.requests.domain.models import Comment, WorkRequest

RequestT = TypeVar("RequestT", bound=WorkRequest)


def add_comment(
    request: RequestT,
    comment_id: str,
    author_name: str,
    text: str,
    created_at: datetime,
    can_comment: bool,
) -> Tuple[RequestT, Comment]:
    if not can_comment:
        raise PermissionDenied("댓글을 작성할 권한이 없습니다")
    if not text or not text.strip():
        raise ValidationFailed("댓글 내용을 입력해주세요")

    comment = Comment(
        id=comment_id,
        user=author_name,
        text=text,
        created_at=created_at,
        read_by=frozenset(),
    )
    return replace(request, comments=tuple(request.comments) + (comment,)), comment


def mark_all_read(request: RequestT, user_id: str) -> RequestT:
    """Add ``user_id`` to every comment's read set.

    Returns the same object when every comment was already read, which lets
    callers skip the save.
    """
    if all(user_id in comment.read_by for comment in request.comments):
        return request
    comments = tuple(
        comment
        if user_id in comment.read_by
        else replace(comment, read_by=comment.read_by | {user_id})
        for comment in request.comments
    )
    return replace(request, comments=comments)


def is_unread(comment: Comment, user_id: str) -> bool:
    return user_id not in comment.read_by


def unread_count(request: WorkRequest, user_id: str) -> int:
    return sum(1 for comment in request.comments if is_unread(comment, user_id))
