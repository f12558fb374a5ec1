"""Tenancy API router: context introspection and policy status."""

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from okrguard.database.tenant import (
    SESSION_VAR_ORG_ID,
    SESSION_VAR_SYSTEM_OWNER,
    SESSION_VAR_USER_ID,
    read_context,
)
from okrguard.models.organization import Organization
from okrguard.modules.tenancy.dependencies import get_admin_db, get_db
from okrguard.modules.tenancy.installer import verify_policies
from okrguard.modules.tenancy.schemas import ContextResponse, PolicyStatusResponse
from okrguard.modules.tenancy.scope import cleanup_health

router = APIRouter(tags=["tenancy"])


@router.get("/me/context", response_model=ContextResponse)
async def get_my_context(db: AsyncSession = Depends(get_db)):
    """The tenant context as the database sees it on this request's connection."""
    conn = await db.connection()
    values = await read_context(conn)
    return ContextResponse(
        user_id=values[SESSION_VAR_USER_ID] or None,
        organization_id=values[SESSION_VAR_ORG_ID] or None,
        is_system_owner=values[SESSION_VAR_SYSTEM_OWNER] == "true",
    )


@router.get("/admin/policies", response_model=PolicyStatusResponse)
async def get_policy_status(db: AsyncSession = Depends(get_admin_db)):
    """Installed-policy drift plus cleanup health. Counts organizations across all tenants."""
    status = await verify_policies()
    organizations = await db.execute(select(func.count()).select_from(Organization))
    return PolicyStatusResponse(
        healthy=status.healthy and cleanup_health.healthy,
        missing_policies=status.missing_policies,
        tables_without_rls=status.tables_without_rls,
        cleanup_failures=cleanup_health.discarded + cleanup_health.unhealthy,
        organizations=organizations.scalar_one(),
    )
