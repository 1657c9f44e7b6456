"""SQLAlchemy model for webhook execution records."""

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from primehooks.common.models import Base, generate_uuid, utcnow

EXECUTION_STATUSES: frozenset[str] = frozenset({"success", "failed", "timeout"})


class ExecutionRecordModel(Base):
    """One webhook invocation attempt. Rows are inserted once and never updated."""

    __tablename__ = "webhook_executions"
    __table_args__ = (
        Index("ix_webhook_executions_webhook_created", "webhook_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    webhook_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("webhooks.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    organization_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    response_time_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_test: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    request_headers: Mapped[dict] = mapped_column(JSON, default=dict)
    request_body: Mapped[dict] = mapped_column(JSON, default=dict)
    response_body: Mapped[Any] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
