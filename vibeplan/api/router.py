"""
VibePlan — Main API Router

Aggregates all sub-routers under a single prefix so that ``vibeplan.main``
can mount the entire API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from vibeplan.api import join, sessions

router = APIRouter()

router.include_router(sessions.router, prefix="/sessions", tags=["Sessions"])
router.include_router(join.router, prefix="/join", tags=["Join"])
