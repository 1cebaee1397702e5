"""
API endpoints.
"""
from fastapi import APIRouter

from acarreos.api import vouchers, history

# Главный роутер API
api_router = APIRouter(prefix="/api/v1")

api_router.include_router(vouchers.router)
api_router.include_router(history.router)

__all__ = ["api_router"]
