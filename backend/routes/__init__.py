"""FastAPI API endpoints under /api.

Endpoint groups: settings (health, settings, check-connection) and sessions
(read, introduction, turn, choose, rewrite, cancel). Every turn endpoint
resolves once the Keeper turn is committed; partial content is visible
meanwhile through GET /api/sessions/{session_id}.
"""

from fastapi import APIRouter

from .sessions import router as sessions_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(sessions_router)
