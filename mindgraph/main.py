"""
MindGraph — Mind Map Graph Service
===================================
FastAPI entry point.

  POST /api/v1/mindmap/build            raw model output → canonical node/edge graph
  POST /api/v1/mindmap/sidebar          graph → topic/subtopic navigation
  POST /api/v1/mindmap/generate         subject → AI providers → canonical graph
  POST /api/v1/mindmap/generate/stream  same, as Server-Sent Events
  GET  /                                health check

Unhandled exceptions are returned as an ErrorResponse with HTTP 500.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mindgraph.api.v1.endpoints.mindmap import router as mindmap_router
from mindgraph.core.config import settings
from mindgraph.schemas.envelope import ErrorResponse

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "MindGraph"
SERVICE_VERSION = "1.0.0"
API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info(f"[{SERVICE_NAME}] v{SERVICE_VERSION} up (AI provider: {settings.AI_PROVIDER})")
    yield
    logger.info(f"[{SERVICE_NAME}] shutting down")


app = FastAPI(
    title=f"{SERVICE_NAME} — Mind Map Graph Service",
    description=(
        "Turns loosely structured AI mind map output into a canonical, positioned "
        "node/edge graph and derives sidebar navigation from it."
    ),
    version=SERVICE_VERSION,
    lifespan=lifespan,
    responses={
        status: {"model": ErrorResponse}
        for status in (500, 503, 504)
    },
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(mindmap_router, prefix=API_PREFIX)


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    logger.exception(f"[{SERVICE_NAME}] {request.method} {request.url.path} crashed")
    envelope = ErrorResponse(
        message="An internal server error occurred.",
        detail=f"{type(exc).__name__}: {exc}",
    )
    return JSONResponse(status_code=500, content=envelope.model_dump())


@app.get("/", tags=["System"])
async def health_check():
    return {
        "status": "operational",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "ai_provider": settings.AI_PROVIDER,
    }
