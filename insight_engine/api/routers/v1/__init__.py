from typing import List

from fastapi import APIRouter

from .analytics import router as analytics_router
from .queries import router as queries_router

v1_routes: List[APIRouter] = [
    queries_router,
    analytics_router,
]

__all__ = [
    "analytics_router",
    "queries_router",
    "v1_routes",
]
