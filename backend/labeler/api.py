import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from labeler.api_models import ErrorResponse
from labeler.config import Settings, load_settings
from labeler.dependencies import build_supabase_client
from labeler.exceptions import (
    AuthenticationError,
    ChunkValidationError,
    LabelerError,
    NotFoundError,
    StoreError,
)
from labeler.metrics import metrics_endpoint

log = logging.getLogger("labeler")

_STATUS_BY_ERROR = {
    ChunkValidationError: 422,
    AuthenticationError: 401,
    NotFoundError: 404,
    StoreError: 502,
}


def create_app(settings: Optional[Settings] = None, supabase: Any = None) -> FastAPI:
    """Build the API.

    The Supabase client handle lives on ``app.state`` and reaches routes only
    through dependencies. Pass *supabase* to inject a client (tests, scripts);
    otherwise one is created from *settings* at startup.
    """
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.supabase is None:
            app.state.supabase = build_supabase_client(settings)
        yield

    app = FastAPI(
        title="Whiteboard Labeler API",
        description="Label handwritten chunks on whiteboard images and export the results.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.supabase = supabase

    # --- Add Middleware ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Routers ---
    from labeler.routers import auth, export, label_ws, whiteboards

    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(whiteboards.router, prefix="/api/v1")
    app.include_router(export.router, prefix="/api/v1")
    app.include_router(label_ws.router)  # /ws/... paths mounted without extra prefix

    app.add_route("/metrics", metrics_endpoint, methods=["GET"])  # Prometheus scrape endpoint

    @app.get("/", tags=["Root"])
    async def read_root():
        return {"message": "Welcome to the Whiteboard Labeler API!"}

    @app.get("/error", tags=["Root"])
    async def error_page():
        err = ErrorResponse(error_code="generic", error_message="Something went wrong. Sorry about that. Please try again later.")
        return JSONResponse(status_code=200, content=err.model_dump())

    # --- Global Exception Handlers ---
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        err = ErrorResponse(error_message=str(exc.detail))
        return JSONResponse(status_code=exc.status_code, content=err.model_dump(), headers=exc.headers)

    @app.exception_handler(LabelerError)
    async def labeler_exception_handler(request: Request, exc: LabelerError):
        status_code = next(
            (code for cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, cls)),
            400,
        )
        if isinstance(exc, StoreError):
            log.error("Store error on %s: %s", request.url.path, exc.detail)
            err = ErrorResponse(error_code=exc.code, error_message="The data store is unavailable. Please try again.",
                                technical_details=exc.detail)
        else:
            err = ErrorResponse(error_code=exc.code, error_message=exc.detail)
        return JSONResponse(status_code=status_code, content=err.model_dump())

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        log.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
        err = ErrorResponse(error_message="Internal server error")
        return JSONResponse(status_code=500, content=err.model_dump())

    return app


app = create_app()

# To run the API: uvicorn labeler.api:app --reload --port 8001
