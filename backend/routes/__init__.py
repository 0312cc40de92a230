"""FastAPI API endpoints under /api.

Endpoint groups: health/anomalies/settings, runs (create, inspect, save,
restore, move, ethics violations) and encounters. Each run's encounters are
nested under /api/runs/{run_id}/encounters/.
"""

from fastapi import APIRouter

from .encounters import router as encounters_router
from .runs import router as runs_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(runs_router)
router.include_router(encounters_router)
