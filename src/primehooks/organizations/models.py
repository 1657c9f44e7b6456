"""SQLAlchemy model for organizations."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from primehooks.common.models import Base, TimestampMixin, generate_uuid


class OrganizationModel(Base, TimestampMixin):
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    api_key_hash: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
