# Import all models so SQLAlchemy metadata is populated for Alembic autogenerate
from okrguard.models.initiative import (
    Initiative,
    InitiativeMember,
    InitiativeSuccessMetric,
    SuccessMetricUpdate,
)
from okrguard.models.objective import CheckIn, KeyResult, Objective
from okrguard.models.organization import Organization
from okrguard.models.subscription import OrganizationSubscription, SubscriptionPlan
from okrguard.models.task import Task
from okrguard.models.team import Team
from okrguard.models.user import User

__all__ = [
    "CheckIn",
    "Initiative",
    "InitiativeMember",
    "InitiativeSuccessMetric",
    "KeyResult",
    "Objective",
    "Organization",
    "OrganizationSubscription",
    "SubscriptionPlan",
    "SuccessMetricUpdate",
    "Task",
    "Team",
    "User",
]
