"""Tenancy module constants for RLS and multi-tenant isolation."""

# Longest ownership chain a protected entity may declare (row -> ... -> users)
MAX_CHAIN_DEPTH = 3

# PostgreSQL truncates identifiers beyond this length
MAX_IDENTIFIER_LENGTH = 63

# Every policy this layer can attach is named "<table>_<suffix>". reset()
# drops all of these for every modelled table.
POLICY_SUFFIX_ORGANIZATION = "organization_policy"
POLICY_SUFFIX_ACCESS = "access_policy"
POLICY_SUFFIX_READ = "read_policy"
POLICY_SUFFIX_MODIFY = "modify_policy"
POLICY_SUFFIX_UPDATE = "update_policy"
POLICY_SUFFIX_DELETE = "delete_policy"

POLICY_SUFFIXES = (
    POLICY_SUFFIX_ORGANIZATION,
    POLICY_SUFFIX_ACCESS,
    POLICY_SUFFIX_READ,
    POLICY_SUFFIX_MODIFY,
    POLICY_SUFFIX_UPDATE,
    POLICY_SUFFIX_DELETE,
)

# SQL helpers the predicates call
FN_CURRENT_ORGANIZATION = "get_current_organization_id"
FN_CURRENT_USER = "get_current_user_id"
FN_IS_SYSTEM_OWNER = "is_system_owner"

# Routes that never receive a tenant context
EXCLUDED_ROUTES = [
    "/health",
    "/api/auth/login",
    "/api/auth/register",
    "/api/docs",
    "/api/openapi.json",
    "/api/redoc",
]
