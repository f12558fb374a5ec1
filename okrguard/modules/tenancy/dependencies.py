"""FastAPI dependency functions for tenant-scoped database access."""

import logging
from collections.abc import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from okrguard.exceptions import ForbiddenException, NotFoundException, UnauthorizedException
from okrguard.modules.tenancy.directory import TenantDirectory
from okrguard.modules.tenancy.middleware import SCOPE_STATE_KEY
from okrguard.modules.tenancy.schemas import OrganizationRecord, TenantContext
from okrguard.modules.tenancy.scope import TenantScope

logger = logging.getLogger(__name__)


def get_directory(request: Request) -> TenantDirectory:
    return request.app.state.directory


def get_tenant_scope(request: Request) -> TenantScope:
    """The scope built by TenantContextMiddleware.

    Excluded routes have none; they get a fresh anonymous scope so that a
    session opened there is still cleared first.
    """
    scope = getattr(request.state, SCOPE_STATE_KEY, None)
    if scope is None:
        scope = TenantScope(
            TenantContext.anonymous(),
            request.app.state.engine,
            getattr(request.app.state, "session_factory", None),
        )
        setattr(request.state, SCOPE_STATE_KEY, scope)
    return scope


def require_tenant(scope: TenantScope = Depends(get_tenant_scope)) -> TenantContext:
    """Dependency that guarantees an authenticated tenant context exists."""
    if scope.context.is_anonymous:
        raise UnauthorizedException("Authentication required")
    return scope.context


async def get_db(
    scope: TenantScope = Depends(get_tenant_scope),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session whose connection carries the request's tenant context."""
    async with scope.session() as session:
        yield session


# ---------------------------------------------------------------------------
# Slug-addressed routes: /api/org/{slug}/...
# ---------------------------------------------------------------------------


async def resolve_organization(
    slug: str,
    scope: TenantScope = Depends(get_tenant_scope),
    directory: TenantDirectory = Depends(get_directory),
) -> OrganizationRecord:
    """Resolve ``slug`` and verify the caller may act inside it.

    System owners may enter any organization and the scope is retargeted to
    it. Everyone else must belong to it. Must run before the session opens.
    """
    organization = await directory.get_organization_by_slug(slug)
    if organization is None:
        raise NotFoundException("Organization not found")

    context = scope.context
    if context.is_anonymous:
        raise UnauthorizedException("Authentication required")

    if context.is_system_owner:
        logger.info(
            "System owner %s entering organization %s", context.user_id, organization.id
        )
        scope.override_organization(organization.id)
    elif context.organization_id != organization.id:
        logger.warning(
            "User %s denied access to organization %s", context.user_id, organization.id
        )
        raise ForbiddenException("Access denied to this organization")

    return organization


async def get_org_db(
    organization: OrganizationRecord = Depends(resolve_organization),
    scope: TenantScope = Depends(get_tenant_scope),
) -> AsyncGenerator[AsyncSession, None]:
    async with scope.session() as session:
        yield session


# ---------------------------------------------------------------------------
# System owner routes
# ---------------------------------------------------------------------------


async def require_system_owner(
    scope: TenantScope = Depends(get_tenant_scope),
    directory: TenantDirectory = Depends(get_directory),
) -> TenantContext:
    """Re-read the stored flag, then elevate this request's scope."""
    if scope.context.is_anonymous:
        raise UnauthorizedException("Authentication required")

    user = await directory.get_user(scope.context.user_id)
    if user is None or not user.is_active or not user.is_system_owner:
        raise ForbiddenException("System owner access required")

    scope.elevate()
    return scope.context


async def get_admin_db(
    context: TenantContext = Depends(require_system_owner),
    scope: TenantScope = Depends(get_tenant_scope),
) -> AsyncGenerator[AsyncSession, None]:
    async with scope.session() as session:
        yield session
