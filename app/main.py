"""FastAPI application serving study plan generation."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request

from app.api.routes.study_plan import router as study_plan_router
from app.core.config import settings
from app.core.logging import configure_logging
from app.core.middleware import RequestIDMiddleware
from app.observability.client import init_opik
from app.observability.tracing import trace


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    init_opik()
    yield


def create_app() -> FastAPI:
    configure_logging(log_level=settings.log_level)

    application = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    application.add_middleware(RequestIDMiddleware)
    application.include_router(study_plan_router)

    @application.get("/health", tags=["health"], summary="Readiness probe")
    async def health_check(request: Request) -> dict[str, str]:
        with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
            return {"status": "ok"}

    return application


app = create_app()
