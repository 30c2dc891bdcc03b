"""V1 API router aggregation."""

from fastapi import APIRouter

from backoffice.api.v1.auth import router as auth_router
from backoffice.api.v1.companies import router as companies_router
from backoffice.api.v1.me import router as me_router
from backoffice.api.v1.superadmin import router as superadmin_router

v1_router = APIRouter(prefix="/v1")
v1_router.include_router(auth_router)
v1_router.include_router(me_router)
v1_router.include_router(superadmin_router)
v1_router.include_router(companies_router)
