"""Objectives, their key results, and key-result check-ins.

None of these carry an organization column; their tenant is reached
through ``objectives.owner_id``.
"""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from okrguard.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Objective(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "objectives"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    team_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("teams.id", ondelete="SET NULL")
    )
    status: Mapped[str] = mapped_column(String(50), server_default="in_progress", nullable=False)

    key_results: Mapped[list[KeyResult]] = relationship(
        "KeyResult", back_populates="objective", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_objectives_owner_id", "owner_id"),
    )


class KeyResult(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "key_results"

    objective_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("objectives.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    current_value: Mapped[Decimal] = mapped_column(Numeric(15, 2), server_default="0", nullable=False)
    target_value: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    unit: Mapped[str] = mapped_column(String(50), server_default="number", nullable=False)

    objective: Mapped[Objective] = relationship("Objective", back_populates="key_results")

    __table_args__ = (
        Index("idx_key_results_objective_id", "objective_id"),
    )


class CheckIn(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "check_ins"

    key_result_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("key_results.id", ondelete="CASCADE"), nullable=False
    )
    value: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    checked_in_on: Mapped[date | None] = mapped_column(Date)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )

    __table_args__ = (
        Index("idx_check_ins_key_result_id", "key_result_id"),
    )
