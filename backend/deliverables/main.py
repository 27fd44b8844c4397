from contextlib import asynccontextmanager
from functools import lru_cache
import logging
from pathlib import Path
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from deliverables.api.routers.deliverables import build_deliverables_router
from deliverables.api.routers.system import router as system_router
from deliverables.api.services.runtime import ArtifactRegistry, failure_payload
from deliverables.composer import CompositionFailure
from deliverables.config import settings
from deliverables.lint import BannedTokenError
from deliverables.observability import (
    configure_logging,
    normalize_request_id,
    reset_request_id,
    sanitize_for_logging,
    set_request_id,
)
from deliverables.parsers import ContextParseError
from deliverables.pipeline import DeliverablePipeline, error_code_for
from deliverables.render import RenderingFailure
from deliverables.storage import StorageError
from deliverables.version import APP_VERSION

logger = logging.getLogger("deliverables.api")

artifact_registry = ArtifactRegistry()


@lru_cache(maxsize=1)
def _cached_pipeline() -> DeliverablePipeline:
    return DeliverablePipeline(settings)


def get_pipeline() -> DeliverablePipeline:
    return _cached_pipeline()


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging(settings.log_level)
    logger.info("application_startup", extra={"event": "application_startup", "environment": settings.app_env})
    if settings.storage_backend.strip().lower() in {"local", "filesystem", "fs"}:
        Path(settings.storage_root).mkdir(parents=True, exist_ok=True)
    yield
    logger.info("application_shutdown", extra={"event": "application_shutdown"})


def create_app() -> FastAPI:
    cors_origins = settings.cors_origins_list
    if settings.cors_allow_credentials and any(origin == "*" for origin in cors_origins):
        raise RuntimeError("Invalid CORS_ORIGINS: wildcard '*' is not allowed when credentials are enabled.")

    app = FastAPI(title=settings.app_name, version=APP_VERSION, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", settings.request_id_header],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        request_id = normalize_request_id(request.headers.get(settings.request_id_header))
        request.state.request_id = request_id
        token = set_request_id(request_id)
        started = time.perf_counter()

        logger.info(
            "request_started",
            extra={
                "event": "request_started",
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "query": sanitize_for_logging(dict(request.query_params)),
                "client_ip": request.client.host if request.client else None,
            },
        )

        try:
            response = await call_next(request)
            response.headers[settings.request_id_header] = request_id
            logger.info(
                "request_completed",
                extra={
                    "event": "request_completed",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )
            return response
        except Exception:
            logger.exception(
                "request_failed",
                extra={
                    "event": "request_failed",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )
            raise
        finally:
            reset_request_id(token)

    @app.exception_handler(BannedTokenError)
    async def banned_token_handler(_: Request, exc: BannedTokenError) -> JSONResponse:
        payload = failure_payload(error_code_for(exc), str(exc))
        payload["banned_token"] = exc.token
        return JSONResponse(status_code=422, content=payload)

    @app.exception_handler(CompositionFailure)
    @app.exception_handler(RenderingFailure)
    async def generation_failure_handler(_: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=422, content=failure_payload(error_code_for(exc), str(exc)))

    @app.exception_handler(StorageError)
    async def storage_failure_handler(_: Request, exc: StorageError) -> JSONResponse:
        return JSONResponse(status_code=503, content=failure_payload(error_code_for(exc), str(exc)))

    @app.exception_handler(ContextParseError)
    async def context_parse_handler(_: Request, exc: ContextParseError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    app.include_router(system_router)
    app.include_router(
        build_deliverables_router(
            get_pipeline=lambda: get_pipeline(),
            registry=artifact_registry,
        )
    )
    return app


app = create_app()
