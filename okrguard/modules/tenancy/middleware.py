"""ASGI middleware that resolves the acting user and owns the request's tenant scope."""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Receive, Scope, Send

from okrguard.exceptions import UnauthorizedException
from okrguard.modules.tenancy.auth import extract_bearer_token, user_id_from_token
from okrguard.modules.tenancy.constants import EXCLUDED_ROUTES
from okrguard.modules.tenancy.directory import TenantDirectory
from okrguard.modules.tenancy.schemas import TenantContext
from okrguard.modules.tenancy.scope import ClearOutcome, SessionFactory, TenantScope

logger = logging.getLogger(__name__)

SCOPE_STATE_KEY = "tenant_scope"


def is_excluded(path: str) -> bool:
    return path in EXCLUDED_ROUTES


class TenantContextMiddleware:
    """Builds a ``TenantScope`` per request and closes it on the terminal event.

    Plain ASGI: cleanup runs once the response has finished or failed,
    including when a client disconnect cancels the task.

    Excluded routes get no scope. Requests without a valid user get an
    anonymous scope, which clears the connection's context before use.
    """

    def __init__(
        self,
        app: ASGIApp,
        directory: TenantDirectory,
        engine: AsyncEngine,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self.app = app
        self.directory = directory
        self.engine = engine
        self.session_factory = session_factory

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or is_excluded(scope["path"]):
            await self.app(scope, receive, send)
            return

        context = await self.resolve_context(Headers(scope=scope))
        tenant_scope = TenantScope(context, self.engine, self.session_factory)
        scope.setdefault("state", {})[SCOPE_STATE_KEY] = tenant_scope

        try:
            await self.app(scope, receive, send)
        finally:
            # Shielded so a cancelled request still returns a clean connection
            outcome = await asyncio.shield(tenant_scope.close())
            if outcome is not ClearOutcome.CLEARED:
                logger.error(
                    "Tenant cleanup for %s %s finished with %s",
                    scope.get("method"),
                    scope["path"],
                    outcome.value,
                )

    async def resolve_context(self, headers: Headers) -> TenantContext:
        """Load the acting user's tenancy facts; any failure means no context."""
        token = extract_bearer_token(headers)
        if token is None:
            return TenantContext.anonymous()

        try:
            user_id = user_id_from_token(token)
        except UnauthorizedException:
            return TenantContext.anonymous()

        try:
            user = await self.directory.get_user(user_id)
        except Exception:
            logger.exception("Failed to load user %s for tenant context", user_id)
            return TenantContext.anonymous()

        if user is None or not user.is_active:
            logger.info("No active user %s; continuing without tenant context", user_id)
            return TenantContext.anonymous()

        return TenantContext(
            user_id=user.id,
            organization_id=user.organization_id,
            is_system_owner=user.is_system_owner,
        )
