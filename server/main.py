"""
FastAPI backend for the workflow automation platform.

Stores node-graph workflows, runs them in canvas order and retries failed
nodes through a background job queue.
"""

from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from core.container import container
from core.logging import configure_logging, get_logger
from middleware.auth import AuthMiddleware
from middleware.security import SecurityHeadersMiddleware
from routers import auth, jobs, menu, users, workflows

# Initialize settings and logging
settings = container.settings()
configure_logging(settings)
logger = get_logger(__name__)


class AppJSONResponse(ORJSONResponse):
    """orjson rendering; integers beyond 64 bits fall back to the stdlib encoder."""

    def render(self, content) -> bytes:
        try:
            return super().render(content)
        except TypeError:
            return JSONResponse.render(self, content)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    logger.info("Starting workflow services")

    await container.database().startup()
    await container.broker().startup()
    await container.job_queue().startup()

    worker = container.retry_worker()
    if settings.worker_enabled:
        await worker.start()

    logger.info("Services started successfully")
    yield

    # Shutdown in reverse order
    await worker.stop()
    await container.broker().shutdown()
    await container.database().shutdown()
    logger.info("Services shutdown complete")


app = FastAPI(
    title="Workflow Automation Services",
    version="1.0.0",
    description="Workflow storage, execution and retry queue",
    lifespan=lifespan,
    default_response_class=AppJSONResponse
)


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error("Unhandled exception", path=request.url.path,
                         error=f"{type(e).__name__}: {e}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": str(e) or type(e).__name__}
            )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Render HTTP errors with the same ``{"error": ...}`` body as the routes."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None)
    )


# Outermost last: CORS wraps security headers, auth and the catch-all
app.add_middleware(CatchAllExceptionsMiddleware)
app.add_middleware(AuthMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

logger.info("Configuring CORS middleware",
            origins_count=len(settings.cors_origins),
            origins=settings.cors_origins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(workflows.router)
app.include_router(menu.router)
app.include_router(users.router)
app.include_router(jobs.router)


@app.get("/health")
async def health_check():
    broker = container.broker()
    return {
        "status": "OK",
        "service": "workflows",
        "version": app.version,
        "environment": "development" if settings.debug else "production",
        "redis_enabled": settings.redis_enabled,
        "queue_backend": "redis" if broker.is_streams_available() else "memory",
        "worker_running": container.retry_worker().running,
        "timestamp": datetime.now().isoformat()
    }


if __name__ == "__main__":
    import uvicorn
    logger.info("Starting workflow services",
                host=settings.host, port=settings.port, debug=settings.debug)
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        workers=1 if settings.debug else settings.workers
    )
