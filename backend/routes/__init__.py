"""FastAPI API endpoints under /api.

Endpoint groups: settings (health, global settings), events (definitions,
trigger, progress, resolve, memory choices), tech (nodes, links, decay,
relearn), legacy (ledger, score, clock, saved worlds). All of them act on the
single live world held by backend.session.
"""

from fastapi import APIRouter

from .events import router as events_router
from .legacy import router as legacy_router
from .settings import router as settings_router
from .tech import router as tech_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(events_router)
router.include_router(tech_router)
router.include_router(legacy_router)
