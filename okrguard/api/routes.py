"""Centralized API router: all module routers are included here."""

from fastapi import APIRouter

from okrguard.modules.okr.router import router as okr_router
from okrguard.modules.tenancy.router import router as tenancy_router

api_router = APIRouter(prefix="/api")
api_router.include_router(tenancy_router)
api_router.include_router(okr_router)
