"""Request-scoped ownership of one pooled connection and its tenant context.

A ``TenantScope`` couples the steps that must never be separated:
acquire a connection, write the context, run the request's queries, clear
the context, release the connection. The per-scope state machine is::

    UNSET -> SET -> CLEARED -> UNSET

A fresh connection starts UNSET; closing leaves the scope CLEARED, from
which another session may be opened. Writing a context onto a scope that
is already SET is rejected.
"""

from __future__ import annotations

import enum
import logging
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncSession

from okrguard.database.tenant import clear_context, set_context
from okrguard.exceptions import ContextStateError
from okrguard.modules.tenancy.schemas import TenantContext

logger = logging.getLogger(__name__)

SessionFactory = Callable[..., AsyncSession]


class ContextState(str, enum.Enum):
    UNSET = "UNSET"
    SET = "SET"
    CLEARED = "CLEARED"


class ClearOutcome(str, enum.Enum):
    """Result of returning a connection to the pool."""

    CLEARED = "CLEARED"  # context cleared, connection back in the pool
    DISCARDED = "DISCARDED"  # clear failed, connection invalidated instead
    UNHEALTHY = "UNHEALTHY"  # clear and invalidate both failed


@dataclass
class CleanupHealth:
    discarded: int = 0
    unhealthy: int = 0

    @property
    def healthy(self) -> bool:
        return self.unhealthy == 0

    def record(self, outcome: ClearOutcome) -> None:
        if outcome is ClearOutcome.DISCARDED:
            self.discarded += 1
        elif outcome is ClearOutcome.UNHEALTHY:
            self.unhealthy += 1


cleanup_health = CleanupHealth()


def _default_session_factory(bind: AsyncConnection) -> AsyncSession:
    return AsyncSession(bind=bind, expire_on_commit=False)


async def release_connection(conn: AsyncConnection) -> ClearOutcome:
    """Clear the context and return ``conn`` to its pool. Never raises."""
    try:
        await clear_context(conn)
        await conn.close()
        return ClearOutcome.CLEARED
    except Exception as exc:
        logger.error("Error clearing tenant context, discarding connection: %s", exc)
        clear_error = exc

    try:
        await conn.invalidate(clear_error)
        await conn.close()
        return ClearOutcome.DISCARDED
    except Exception as exc:
        logger.critical("Could not discard connection with stale tenant context: %s", exc)
        return ClearOutcome.UNHEALTHY


class TenantScope:
    def __init__(
        self,
        context: TenantContext,
        engine: AsyncEngine,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self.context = context
        self.state = ContextState.UNSET
        self.last_outcome: ClearOutcome | None = None
        self._engine = engine
        self._session_factory = session_factory or _default_session_factory
        self._connection: AsyncConnection | None = None

    def _require_unset(self, action: str) -> None:
        if self.state is ContextState.SET:
            raise ContextStateError(f"Cannot {action}: tenant context is already applied")

    def override_organization(self, organization_id: uuid.UUID) -> None:
        """Point this scope at another organization before any query runs."""
        self._require_unset("override organization")
        self.context = self.context.model_copy(update={"organization_id": organization_id})

    def elevate(self) -> None:
        """Grant system-owner visibility for this scope only.

        Callers must have re-read the user's stored flag first.
        """
        self._require_unset("elevate")
        self.context = self.context.model_copy(update={"is_system_owner": True})

    async def _apply(self, conn: AsyncConnection) -> AsyncConnection:
        """Write this scope's context and return the connection that carries it.

        A failed write continues with no context. When even clearing fails,
        the connection is discarded and a fresh one is cleared instead.
        """
        if not self.context.is_anonymous:
            try:
                await set_context(
                    conn,
                    user_id=str(self.context.user_id),
                    organization_id=(
                        str(self.context.organization_id) if self.context.organization_id else None
                    ),
                    is_system_owner=self.context.is_system_owner,
                )
                return conn
            except SQLAlchemyError as exc:
                logger.error(
                    "Failed to write tenant context for user=%s: %s", self.context.user_id, exc
                )
                self.context = TenantContext.anonymous()

        try:
            await clear_context(conn)
            return conn
        except SQLAlchemyError as exc:
            logger.error("Failed to clear tenant context, replacing connection: %s", exc)

        self._connection = None
        cleanup_health.record(await release_connection(conn))
        fresh = await self._engine.connect()
        self._connection = fresh
        await clear_context(fresh)
        return fresh

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session pinned to one connection carrying this scope's context."""
        self._require_unset("open a session")
        conn = await self._engine.connect()
        self._connection = conn
        self.state = ContextState.UNSET
        try:
            conn = await self._apply(conn)
            self.state = ContextState.SET
            session = self._session_factory(bind=conn)
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()
        finally:
            await self.close()

    async def close(self) -> ClearOutcome:
        """Clear the context and release the connection. Idempotent, never raises."""
        conn, self._connection = self._connection, None
        if conn is None:
            return self.last_outcome or ClearOutcome.CLEARED

        outcome = await release_connection(conn)
        cleanup_health.record(outcome)
        self.last_outcome = outcome
        self.state = ContextState.CLEARED
        return outcome


@asynccontextmanager
async def tenant_session(
    context: TenantContext,
    engine: AsyncEngine,
) -> AsyncIterator[AsyncSession]:
    """Session acting for ``context`` outside a request (maintenance jobs)."""
    scope = TenantScope(context, engine)
    async with scope.session() as session:
        yield session
