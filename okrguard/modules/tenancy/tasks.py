"""Celery tasks for isolation-policy upkeep."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from celery_app import celery
from okrguard.config import settings
from okrguard.modules.tenancy.installer import verify_policies
from okrguard.modules.tenancy.schemas import TenantContext
from okrguard.modules.tenancy.scope import tenant_session

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _verify_isolation_policies_async() -> dict:
    status = await verify_policies()
    if not status.healthy:
        logger.error(
            "Isolation policies drifted: missing=%s tables_without_rls=%s",
            status.missing_policies,
            status.tables_without_rls,
        )
    return {
        "healthy": status.healthy,
        "missing_policies": status.missing_policies,
        "tables_without_rls": status.tables_without_rls,
    }


async def run_as_tenant(
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    work: Callable[[AsyncSession], Awaitable[T]],
) -> T:
    """Run ``work`` with the same visibility as ``user_id`` inside one organization.

    Each Celery task runs its own event loop, so the engine lives only for this call.
    """
    task_engine = create_async_engine(settings.database_url, pool_size=1, max_overflow=0)
    context = TenantContext(user_id=user_id, organization_id=organization_id)
    try:
        async with tenant_session(context, task_engine) as session:
            return await work(session)
    finally:
        await task_engine.dispose()


# ---------------------------------------------------------------------------
# Celery task definitions
# ---------------------------------------------------------------------------


@celery.task(name="okrguard.modules.tenancy.tasks.verify_isolation_policies")
def verify_isolation_policies():
    """Compare installed policies with the policy model and log any drift."""
    stats = asyncio.run(_verify_isolation_policies_async())
    logger.info("verify_isolation_policies complete: %s", stats)
    return stats
