"""Lookups the isolation layer needs before any tenant context exists.

``users`` and ``organizations`` are protected tables themselves, so each
lookup runs in its own short transaction with a transaction-local
system-owner elevation. The elevation ends with the transaction; the
connection goes back to the pool with no context attached.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from okrguard.database.tenant import elevate_transaction
from okrguard.models.organization import Organization
from okrguard.models.user import User
from okrguard.modules.tenancy.schemas import OrganizationRecord, UserRecord

logger = logging.getLogger(__name__)


class TenantDirectory:
    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def get_user(self, user_id: uuid.UUID) -> UserRecord | None:
        """Authoritative organization and system-owner flag for ``user_id``."""
        async with self._engine.connect() as conn:
            async with conn.begin():
                await elevate_transaction(conn)
                result = await conn.execute(
                    select(
                        User.id,
                        User.organization_id,
                        User.is_system_owner,
                        User.is_active,
                    ).where(User.id == user_id)
                )
                row = result.one_or_none()

        if row is None:
            return None
        return UserRecord(
            id=row.id,
            organization_id=row.organization_id,
            is_system_owner=row.is_system_owner,
            is_active=row.is_active,
        )

    async def get_organization_by_slug(self, slug: str) -> OrganizationRecord | None:
        """Resolve a URL slug. Unknown slugs return None, never a fallback."""
        async with self._engine.connect() as conn:
            async with conn.begin():
                await elevate_transaction(conn)
                result = await conn.execute(
                    select(Organization.id, Organization.slug, Organization.name).where(
                        Organization.slug == slug
                    )
                )
                row = result.one_or_none()

        if row is None:
            logger.info("Organization slug not found: %s", slug)
            return None
        return OrganizationRecord(id=row.id, slug=row.slug, name=row.name)
