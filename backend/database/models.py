"""
PostgreSQL Database Models - SQLAlchemy ORM
Work request documents and id counters
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import Integer, String, Text, DateTime, Float, Index, JSON
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.orm import Mapped, mapped_column

from .connection import Base


# ==================== WORK REQUEST MODEL ====================

class WorkRequestRecord(Base):
    """Work request - one row per jig, production or sample request.

    History and comments are stored inline as JSON lists; the row is saved
    as a whole with a version check.
    """
    __tablename__ = "work_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    requester: Mapped[str] = mapped_column(String(255), nullable=False)
    author_id: Mapped[str] = mapped_column(String(36), nullable=False)
    author_name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0)
    received_quantity: Mapped[int] = mapped_column(Integer, default=0)  # jig only
    unit_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    core_cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    request_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)  # production only
    details: Mapped[dict] = mapped_column(JSON, default=dict)
    work_data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)  # sample only
    history: Mapped[list] = mapped_column(JSON, default=list)
    comments: Mapped[list] = mapped_column(JSON, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index('idx_work_requests_kind_status', 'kind', 'status', 'created_at'),
        Index('idx_work_requests_kind_requester', 'kind', 'requester'),
    )


# ==================== COUNTERS ====================

class RequestCounter(Base):
    """Running counters used to number new requests"""
    __tablename__ = "request_counters"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


# Counter rows seeded at startup, one per request kind
COUNTER_SEEDS = {
    "jig": "지그 요청 번호 (T{n})",
    "production": "생산 요청 번호 (P-YYMMDD-nnn)",
    "sample": "샘플 요청 번호 (S-YYYYMMDD-nnn)",
}


def counter_seed_statement():
    """INSERT of the missing counter rows; existing rows are left alone."""
    return (
        pg_insert(RequestCounter)
        .values([
            {"name": name, "count": 0, "description": description}
            for name, description in COUNTER_SEEDS.items()
        ])
        .on_conflict_do_nothing(index_elements=["name"])
    )
