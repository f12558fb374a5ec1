"""OKR API router.

``/objectives`` acts inside the caller's own organization. The
``/org/{slug}/...`` variants act inside the organization named by the slug,
which only its members and system owners may enter.
"""

import uuid

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from okrguard.app import limiter
from okrguard.modules.okr.schemas import (
    CheckInCreate,
    CheckInResponse,
    KeyResultResponse,
    ObjectiveCreate,
    ObjectiveResponse,
)
from okrguard.modules.okr.storage import ObjectiveStorage
from okrguard.modules.tenancy.dependencies import get_db, get_org_db, require_tenant
from okrguard.modules.tenancy.schemas import TenantContext

router = APIRouter(tags=["okr"])


@router.get("/objectives", response_model=list[ObjectiveResponse])
@limiter.limit("60/minute")
async def list_objectives(
    request: Request,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    return await ObjectiveStorage(db).list_objectives(limit=limit, offset=offset)


@router.post("/objectives", response_model=ObjectiveResponse, status_code=201)
@limiter.limit("30/minute")
async def create_objective(
    request: Request,
    body: ObjectiveCreate,
    context: TenantContext = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    return await ObjectiveStorage(db).create_objective(context.user_id, body)


@router.get("/objectives/{objective_id}", response_model=ObjectiveResponse)
@limiter.limit("60/minute")
async def get_objective(
    request: Request,
    objective_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    return await ObjectiveStorage(db).get_objective(objective_id)


@router.get("/objectives/{objective_id}/key-results", response_model=list[KeyResultResponse])
@limiter.limit("60/minute")
async def list_key_results(
    request: Request,
    objective_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    return await ObjectiveStorage(db).list_key_results(objective_id)


@router.post(
    "/key-results/{key_result_id}/check-ins",
    response_model=CheckInResponse,
    status_code=201,
)
@limiter.limit("30/minute")
async def record_check_in(
    request: Request,
    key_result_id: uuid.UUID,
    body: CheckInCreate,
    context: TenantContext = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    return await ObjectiveStorage(db).record_check_in(key_result_id, context.user_id, body)


# ---------------------------------------------------------------------------
# Slug-addressed
# ---------------------------------------------------------------------------


@router.get("/org/{slug}/objectives", response_model=list[ObjectiveResponse])
@limiter.limit("60/minute")
async def list_organization_objectives(
    request: Request,
    slug: str,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_org_db),
):
    return await ObjectiveStorage(db).list_objectives(limit=limit, offset=offset)
