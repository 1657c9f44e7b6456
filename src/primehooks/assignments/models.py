"""SQLAlchemy model for webhook-to-position assignments."""

from sqlalchemy import Boolean, ForeignKey, Index, JSON, String, true
from sqlalchemy.orm import Mapped, mapped_column

from primehooks.common.models import Base, TimestampMixin, generate_uuid


class AssignmentModel(Base, TimestampMixin):
    __tablename__ = "webhook_assignments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    organization_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    feature_page: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[str] = mapped_column(String(100), nullable=False)
    webhook_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("webhooks.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    button_data: Mapped[dict] = mapped_column(JSON, default=dict)
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)


# At most one active assignment per (organization, page, position).
Index(
    "uq_active_assignment_position",
    AssignmentModel.organization_id,
    AssignmentModel.feature_page,
    AssignmentModel.position,
    unique=True,
    sqlite_where=AssignmentModel.is_active == true(),
    postgresql_where=AssignmentModel.is_active == true(),
)
