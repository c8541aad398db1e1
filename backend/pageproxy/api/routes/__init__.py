"""API route registrations."""
from fastapi import APIRouter

from pageproxy.api.routes import proxy


api_router = APIRouter()
api_router.include_router(proxy.router)

__all__ = ["api_router"]
