"""Unit tests for ObjectiveStorage."""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from okrguard.exceptions import NotFoundException
from okrguard.models.objective import CheckIn, Objective
from okrguard.modules.okr.schemas import CheckInCreate, ObjectiveCreate
from okrguard.modules.okr.storage import ObjectiveStorage


def _make_result(value=None, values=None):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalars.return_value.all.return_value = values or []
    return result


def _make_db(*results):
    db = AsyncMock()
    db.add = MagicMock()
    db.execute = AsyncMock(side_effect=list(results))
    return db


def _make_objective():
    objective = MagicMock()
    objective.id = uuid.uuid4()
    return objective


@pytest.mark.asyncio
async def test_list_objectives_applies_no_organization_filter():
    objectives = [_make_objective(), _make_objective()]
    db = _make_db(_make_result(values=objectives))

    result = await ObjectiveStorage(db).list_objectives()

    assert result == objectives
    query = str(db.execute.await_args.args[0])
    assert "organization" not in query


@pytest.mark.asyncio
async def test_invisible_objective_is_not_found():
    db = _make_db(_make_result(value=None))

    with pytest.raises(NotFoundException):
        await ObjectiveStorage(db).get_objective(uuid.uuid4())


@pytest.mark.asyncio
async def test_create_objective_owned_by_caller():
    owner_id = uuid.uuid4()
    db = _make_db()

    objective = await ObjectiveStorage(db).create_objective(
        owner_id, ObjectiveCreate(title="Grow revenue")
    )

    assert isinstance(objective, Objective)
    assert objective.owner_id == owner_id
    assert objective.title == "Grow revenue"
    db.add.assert_called_once_with(objective)
    db.flush.assert_awaited_once()
    db.refresh.assert_awaited_once_with(objective)


@pytest.mark.asyncio
async def test_list_key_results_checks_objective_first():
    db = _make_db(_make_result(value=None))

    with pytest.raises(NotFoundException):
        await ObjectiveStorage(db).list_key_results(uuid.uuid4())

    assert db.execute.await_count == 1


@pytest.mark.asyncio
async def test_record_check_in_moves_current_value():
    key_result = MagicMock()
    key_result.current_value = Decimal("10")
    db = _make_db(_make_result(value=key_result))
    author = uuid.uuid4()

    check_in = await ObjectiveStorage(db).record_check_in(
        uuid.uuid4(), author, CheckInCreate(value=Decimal("42.5"), notes="on track")
    )

    assert isinstance(check_in, CheckIn)
    assert check_in.created_by == author
    assert key_result.current_value == Decimal("42.5")
    db.add.assert_called_once_with(check_in)


@pytest.mark.asyncio
async def test_record_check_in_on_invisible_key_result():
    db = _make_db(_make_result(value=None))

    with pytest.raises(NotFoundException):
        await ObjectiveStorage(db).record_check_in(
            uuid.uuid4(), uuid.uuid4(), CheckInCreate(value=Decimal("1"))
        )
