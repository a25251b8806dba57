"""API Routers package."""

from app.routers import health as health_router
from app.routers import lessons as lessons_router
from app.routers import notes as notes_router
from app.routers import streak as streak_router
from app.routers import study as study_router
from app.routers import subjects as subjects_router

__all__ = [
    "health_router",
    "lessons_router",
    "notes_router",
    "streak_router",
    "study_router",
    "subjects_router",
]
