"""
MedEd Events attendance and certificate service - FastAPI Backend
Main application entry point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from medevents.core.config import settings
from medevents.core.db import engine, Base
from medevents.core.scheduler import start_scheduler, stop_scheduler
from medevents.exceptions import PipelineError
from medevents.api import routes_admin, routes_attendance, routes_feedback, routes_jobs, routes_public, ws
from medevents.utils.responses import pipeline_error_response

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")
    start_scheduler()
    yield
    stop_scheduler()
    logger.info("Application shutdown")

app = FastAPI(
    title="MedEd Events",
    description="Attendance-gated feedback and certificate release",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return pipeline_error_response(exc)

# Include routers
app.include_router(routes_public.router, tags=["public"])
app.include_router(routes_feedback.router, prefix="/feedback", tags=["feedback"])
app.include_router(routes_attendance.router, prefix="/attendance", tags=["attendance"])
app.include_router(routes_admin.router, prefix="/admin", tags=["admin"])
app.include_router(routes_jobs.router, prefix="/jobs", tags=["jobs"])
app.include_router(ws.router, prefix="/ws", tags=["websocket"])

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="127.0.0.1",
        port=8000,
        reload=True
    )
