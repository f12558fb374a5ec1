"""Tenancy module: organization isolation via PostgreSQL RLS."""

from okrguard.modules.tenancy.dependencies import (
    get_admin_db,
    get_db,
    get_org_db,
    require_system_owner,
    require_tenant,
    resolve_organization,
)
from okrguard.modules.tenancy.installer import (
    PolicyInstaller,
    install_policies,
    reset_policies,
    verify_policies,
)
from okrguard.modules.tenancy.middleware import TenantContextMiddleware
from okrguard.modules.tenancy.schemas import TenantContext
from okrguard.modules.tenancy.scope import TenantScope, tenant_session

__all__ = [
    # Schemas
    "TenantContext",
    # Middleware
    "TenantContextMiddleware",
    # Dependencies
    "get_db",
    "get_org_db",
    "get_admin_db",
    "require_tenant",
    "require_system_owner",
    "resolve_organization",
    # Scope
    "TenantScope",
    "tenant_session",
    # Installer
    "PolicyInstaller",
    "install_policies",
    "reset_policies",
    "verify_policies",
]
