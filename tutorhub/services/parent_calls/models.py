"""Parent-call database models.

`parent_calls` rows are never deleted; cancelled rows stay behind and simply
stop counting toward the monthly quota. `site_settings` is the generic
key/value store the quota maximum is read from.
"""

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Index, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from tutorhub.common.db import Base


class Enrollment(Base):
    """Minimal enrollment record parent calls hang off."""

    __tablename__ = "enrollments"

    enrollment_id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    child_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    coach_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    status: Mapped[str] = mapped_column(String, default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class ParentCall(Base):
    """One parent/coach call against an enrollment's monthly quota."""

    __tablename__ = "parent_calls"
    __table_args__ = (
        Index("ix_parent_calls_enrollment_requested", "enrollment_id", "requested_at"),
        CheckConstraint("(status = 'completed') = (completed_at IS NOT NULL)", name="ck_parent_calls_completed_at"),
    )

    call_id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    enrollment_id: Mapped[str] = mapped_column(ForeignKey("enrollments.enrollment_id"))
    initiated_by: Mapped[str] = mapped_column(String, default="parent")
    status: Mapped[str] = mapped_column(String, default="scheduled", index=True)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(String, nullable=True)


class SiteSetting(Base):
    """Generic key/value configuration row."""

    __tablename__ = "site_settings"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[Any] = mapped_column(JSON().with_variant(JSONB(), "postgresql"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
