"""
DeployWatch - FastAPI Main Application
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from deploywatch.api.routes import router, get_service
from deploywatch.config import get_settings
from deploywatch.utils.logger import get_logger
from deploywatch.utils.metrics import SYSTEM_INFO, get_metrics

logger = get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(
        f"Probe budgets: liveness={settings.liveness_timeout_seconds}s "
        f"metadata={settings.metadata_timeout_seconds}s check={settings.check_timeout_seconds}s"
    )
    SYSTEM_INFO.info({"version": settings.app_version, "app": settings.app_name})
    
    yield
    
    # Shutdown
    if get_service.cache_info().currsize:
        get_service().close()
    logger.info(f"Shutting down {settings.app_name}")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    ## DeployWatch API
    
    Tracks the deployed version of HTTP services across dev/uat/oat/prod
    and flags unsafe promotion orderings.
    
    ### Features
    - Liveness and latency probes
    - Version change history per API and environment
    - Promotion-ordering compliance checks
    """,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class VersionHeaderMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-DeployWatch-Version"] = settings.app_version
        return response


app.add_middleware(VersionHeaderMiddleware)

# Include routes
app.include_router(router)


@app.get("/")
async def root():
    """Root endpoint with API info"""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health")
@app.get("/ready")
async def health_check():
    """Health check endpoint for k8s/monitoring"""
    return {"status": "ok", "version": settings.app_version}


@app.get("/metrics")
async def metrics():
    """Prometheus scrape endpoint"""
    return Response(content=get_metrics(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
