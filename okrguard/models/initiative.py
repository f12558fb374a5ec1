"""Initiatives and the rows hanging off them."""

import uuid
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from okrguard.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Initiative(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "initiatives"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    key_result_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("key_results.id", ondelete="SET NULL")
    )
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(50), server_default="draft", nullable=False)

    __table_args__ = (
        Index("idx_initiatives_created_by", "created_by"),
    )


class InitiativeMember(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "initiative_members"

    initiative_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("initiatives.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(50), server_default="member", nullable=False)

    __table_args__ = (
        Index("idx_initiative_members_user_id", "user_id"),
    )


class InitiativeSuccessMetric(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "initiative_success_metrics"

    initiative_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("initiatives.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    target: Mapped[str | None] = mapped_column(String(255))

    __table_args__ = (
        Index("idx_initiative_success_metrics_initiative_id", "initiative_id"),
    )


class SuccessMetricUpdate(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "success_metric_updates"

    metric_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("initiative_success_metrics.id", ondelete="CASCADE"),
        nullable=False,
    )
    achievement: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
