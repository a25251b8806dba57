"""
Study Streak Tracker API

Application factory wiring configuration, logging, error handling and the
API routers.

Run with:
    uvicorn app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.db.base import init_db
from app.middleware.error_handling import setup_error_handling
from app.routers import (
    health_router,
    lessons_router,
    notes_router,
    streak_router,
    study_router,
    subjects_router,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info(f"{settings.APP_NAME} started")
    yield


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_error_handling(app, debug=settings.DEBUG)

    app.include_router(health_router.router)
    app.include_router(study_router.router)
    app.include_router(streak_router.router)
    app.include_router(subjects_router.router)
    app.include_router(lessons_router.router)
    app.include_router(notes_router.router)

    return app


app = create_app()
