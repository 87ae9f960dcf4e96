"""
API Routes
===========

Route modules:
- health: service info, /health
- inbox:  REST inbox endpoints plus legacy path aliases
- nqp:    NQP envelope and compact forms
- search: search-string DSL
"""

from fastapi import APIRouter

from mesh_inbox.core.config import settings

from .health import router as health_router
from .inbox import alias_router
from .inbox import router as inbox_router
from .nqp import router as nqp_router
from .search import router as search_router

router = APIRouter()
router.include_router(health_router)
router.include_router(inbox_router, prefix=f"{settings.API_V1_PREFIX}/inbox")
router.include_router(nqp_router)
router.include_router(search_router)
router.include_router(alias_router)

__all__ = ["router"]
