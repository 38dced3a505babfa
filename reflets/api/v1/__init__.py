"""V1 API router aggregation."""

from fastapi import APIRouter

from reflets.api.v1.auth import router as auth_router
from reflets.api.v1.god import router as god_router

v1_router = APIRouter(prefix="/v1")
v1_router.include_router(auth_router)
v1_router.include_router(god_router)
