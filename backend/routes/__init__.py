"""FastAPI API endpoints under /api.

Endpoint groups: health, settings (+ API key), presets, calibration, and
sessions. Each session's tools (remix, chat, visual, copy, image-edit),
memory, drift alert, and thumbnail are nested under /api/sessions/{id}/.
"""

from fastapi import APIRouter

from .sessions import router as sessions_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(sessions_router)
