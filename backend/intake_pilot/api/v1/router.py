"""API v1 router aggregator.

All v1 endpoint routers are included here.
"""

from fastapi import APIRouter

from intake_pilot.api.v1 import pipeline, runs

router = APIRouter()

router.include_router(pipeline.router, prefix="/pipeline", tags=["pipeline"])
router.include_router(runs.router, prefix="/runs", tags=["runs"])
