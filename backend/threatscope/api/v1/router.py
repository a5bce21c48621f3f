"""
Aggregated APIRouter for API version 1.

All v1 endpoint routers are included here and exposed as a single ``router``
instance that is mounted by the FastAPI application in ``threatscope.main``.
The prefix ``/api/v1`` is applied by the application, so sub-routers only
declare their own resource prefix.
"""

from __future__ import annotations

from fastapi import APIRouter

from threatscope.api.v1 import incidents, monitoring, scans, threats

router = APIRouter()

router.include_router(
    scans.router,
    prefix="/scans",
    tags=["scans"],
)
router.include_router(
    monitoring.router,
    prefix="/monitoring",
    tags=["monitoring"],
)
router.include_router(
    threats.router,
    prefix="/threats",
    tags=["threats"],
)
router.include_router(
    incidents.router,
    prefix="/incidents",
    tags=["incidents"],
)
