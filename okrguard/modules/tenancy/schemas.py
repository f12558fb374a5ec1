"""Pydantic schemas for tenant context and directory records."""

from __future__ import annotations

import uuid

from pydantic import BaseModel


class TenantContext(BaseModel):
    """The acting user, their organization and the system-owner flag for one request.

    Anonymous contexts carry no ids; every protected predicate evaluates to
    false for them.
    """

    user_id: uuid.UUID | None = None
    organization_id: uuid.UUID | None = None
    is_system_owner: bool = False

    @classmethod
    def anonymous(cls) -> TenantContext:
        return cls()

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None


class UserRecord(BaseModel):
    """Authoritative tenancy facts about a user, read from ``users``."""

    id: uuid.UUID
    organization_id: uuid.UUID | None = None
    is_system_owner: bool = False
    is_active: bool = True


class OrganizationRecord(BaseModel):
    id: uuid.UUID
    slug: str
    name: str


class ContextResponse(BaseModel):
    user_id: uuid.UUID | None
    organization_id: uuid.UUID | None
    is_system_owner: bool


class PolicyStatusResponse(BaseModel):
    healthy: bool
    missing_policies: list[str]
    tables_without_rls: list[str]
    cleanup_failures: int
    organizations: int
