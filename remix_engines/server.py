"""Aggregate app for the remix engines."""
from __future__ import annotations

from fastapi import FastAPI

from remix_engines.common.health import router as health_router
from remix_engines.video_variants.routes import router as video_variants_router


def create_app() -> FastAPI:
    app = FastAPI(title="remix-engines")
    app.include_router(health_router)
    app.include_router(video_variants_router)
    return app


app = create_app()
