import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from eloar.api.routes import distributions, health, optimization
from eloar.core.config import get_settings
from eloar.core.exceptions import AppError
from eloar.db.bootstrap import ensure_runtime_schema_compatibility
from eloar.services.optimization import get_optimization_service

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    ensure_runtime_schema_compatibility()
    yield
    get_optimization_service().shutdown()


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(optimization.router, prefix=f"{settings.api_prefix}/distributions", tags=["optimization"])
app.include_router(distributions.router, prefix=f"{settings.api_prefix}/distributions", tags=["distributions"])
