"""ObjectiveStorage: plain queries against the OKR tables.

Nothing here filters by organization. Which rows a query sees is decided
entirely by the tenant context on the session's connection and the
row-level security policies attached to each table.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from okrguard.exceptions import NotFoundException
from okrguard.models.objective import CheckIn, KeyResult, Objective
from okrguard.modules.okr.schemas import CheckInCreate, ObjectiveCreate

logger = logging.getLogger(__name__)


class ObjectiveStorage:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_objectives(self, limit: int = 50, offset: int = 0) -> list[Objective]:
        result = await self.session.execute(
            select(Objective).order_by(Objective.created_at.desc()).limit(limit).offset(offset)
        )
        return list(result.scalars().all())

    async def get_objective(self, objective_id: uuid.UUID) -> Objective:
        # Another organization's objective is indistinguishable from a missing one
        result = await self.session.execute(
            select(Objective).where(Objective.id == objective_id)
        )
        objective = result.scalar_one_or_none()
        if objective is None:
            raise NotFoundException(f"Objective {objective_id} not found")
        return objective

    async def create_objective(self, owner_id: uuid.UUID, data: ObjectiveCreate) -> Objective:
        objective = Objective(owner_id=owner_id, **data.model_dump())
        self.session.add(objective)
        await self.session.flush()
        await self.session.refresh(objective)
        logger.info("Created objective %s for owner %s", objective.id, owner_id)
        return objective

    async def list_key_results(self, objective_id: uuid.UUID) -> list[KeyResult]:
        await self.get_objective(objective_id)
        result = await self.session.execute(
            select(KeyResult)
            .where(KeyResult.objective_id == objective_id)
            .order_by(KeyResult.created_at)
        )
        return list(result.scalars().all())

    async def record_check_in(
        self,
        key_result_id: uuid.UUID,
        created_by: uuid.UUID,
        data: CheckInCreate,
    ) -> CheckIn:
        """Store a check-in and move the key result's current value to it."""
        result = await self.session.execute(
            select(KeyResult).where(KeyResult.id == key_result_id)
        )
        key_result = result.scalar_one_or_none()
        if key_result is None:
            raise NotFoundException(f"Key result {key_result_id} not found")

        check_in = CheckIn(key_result_id=key_result_id, created_by=created_by, **data.model_dump())
        key_result.current_value = data.value
        self.session.add(check_in)
        await self.session.flush()
        return check_in
