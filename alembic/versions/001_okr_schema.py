"""Create OKR schema - 13 tables

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), primary_key=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    # 1. organizations (owner FK added after users exists)
    op.create_table(
        "organizations",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("owner_id", UUID(as_uuid=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_organizations_slug", "organizations", ["slug"], unique=True)

    # 2. users
    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("organization_id", UUID(as_uuid=True), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True),
        sa.Column("is_system_owner", sa.Boolean, server_default="false", nullable=False),
        sa.Column("is_active", sa.Boolean, server_default="true", nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_users_organization_id", "users", ["organization_id"])
    op.create_foreign_key(
        "fk_organizations_owner_id", "organizations", "users", ["owner_id"], ["id"], ondelete="SET NULL"
    )

    # 3. teams
    op.create_table(
        "teams",
        _id(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("organization_id", UUID(as_uuid=True), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("owner_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_teams_organization_id", "teams", ["organization_id"])

    # 4. objectives
    op.create_table(
        "objectives",
        _id(),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("owner_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("team_id", UUID(as_uuid=True), sa.ForeignKey("teams.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.String(50), server_default="in_progress", nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_objectives_owner_id", "objectives", ["owner_id"])

    # 5. key_results
    op.create_table(
        "key_results",
        _id(),
        sa.Column("objective_id", UUID(as_uuid=True), sa.ForeignKey("objectives.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("current_value", sa.Numeric(15, 2), server_default="0", nullable=False),
        sa.Column("target_value", sa.Numeric(15, 2), nullable=False),
        sa.Column("unit", sa.String(50), server_default="number", nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_key_results_objective_id", "key_results", ["objective_id"])

    # 6. check_ins
    op.create_table(
        "check_ins",
        _id(),
        sa.Column("key_result_id", UUID(as_uuid=True), sa.ForeignKey("key_results.id", ondelete="CASCADE"), nullable=False),
        sa.Column("value", sa.Numeric(15, 2), nullable=False),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("checked_in_on", sa.Date, nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_check_ins_key_result_id", "check_ins", ["key_result_id"])

    # 7. initiatives
    op.create_table(
        "initiatives",
        _id(),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("key_result_id", UUID(as_uuid=True), sa.ForeignKey("key_results.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(50), server_default="draft", nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_initiatives_created_by", "initiatives", ["created_by"])

    # 8. initiative_members
    op.create_table(
        "initiative_members",
        _id(),
        sa.Column("initiative_id", UUID(as_uuid=True), sa.ForeignKey("initiatives.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.String(50), server_default="member", nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_initiative_members_user_id", "initiative_members", ["user_id"])

    # 9. initiative_success_metrics
    op.create_table(
        "initiative_success_metrics",
        _id(),
        sa.Column("initiative_id", UUID(as_uuid=True), sa.ForeignKey("initiatives.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("target", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "idx_initiative_success_metrics_initiative_id", "initiative_success_metrics", ["initiative_id"]
    )

    # 10. success_metric_updates
    op.create_table(
        "success_metric_updates",
        _id(),
        sa.Column("metric_id", UUID(as_uuid=True), sa.ForeignKey("initiative_success_metrics.id", ondelete="CASCADE"), nullable=False),
        sa.Column("achievement", sa.Numeric(15, 2), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        *_timestamps(),
    )

    # 11. tasks
    op.create_table(
        "tasks",
        _id(),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("initiative_id", UUID(as_uuid=True), sa.ForeignKey("initiatives.id", ondelete="CASCADE"), nullable=True),
        sa.Column("assigned_to", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(50), server_default="not_started", nullable=False),
        sa.Column("due_date", sa.Date, nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_tasks_created_by", "tasks", ["created_by"])

    # 12. subscription_plans
    op.create_table(
        "subscription_plans",
        _id(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("slug", sa.String(100), unique=True, nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("max_users", sa.Integer, nullable=True),
        sa.Column("is_active", sa.Boolean, server_default="true", nullable=False),
        *_timestamps(),
    )

    # 13. organization_subscriptions
    op.create_table(
        "organization_subscriptions",
        _id(),
        sa.Column("organization_id", UUID(as_uuid=True), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("plan_id", UUID(as_uuid=True), sa.ForeignKey("subscription_plans.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("status", sa.String(50), server_default="active", nullable=False),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "idx_organization_subscriptions_organization_id", "organization_subscriptions", ["organization_id"]
    )


def downgrade() -> None:
    op.drop_table("organization_subscriptions")
    op.drop_table("subscription_plans")
    op.drop_table("tasks")
    op.drop_table("success_metric_updates")
    op.drop_table("initiative_success_metrics")
    op.drop_table("initiative_members")
    op.drop_table("initiatives")
    op.drop_table("check_ins")
    op.drop_table("key_results")
    op.drop_table("objectives")
    op.drop_table("teams")
    op.drop_constraint("fk_organizations_owner_id", "organizations", type_="foreignkey")
    op.drop_table("users")
    op.drop_table("organizations")
