from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from document_analyzer.api.router import router as api_router
from document_analyzer.bootstrap import bootstrap
from document_analyzer.core.config import settings
from document_analyzer.core.logging import RequestContextMiddleware, get_logger, log_event
from document_analyzer.modules.extraction.service import create_pipeline

logger = get_logger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    parts: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        msg = err.get("msg", "Invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid request"


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    message = _validation_message(exc)
    log_event(logger, "http.request.invalid", path=request.url.path, error=message)
    return JSONResponse(
        status_code=422,
        content={"error": message, "detail": jsonable_encoder(exc.errors())},
    )


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        bootstrap()
        app.state.pipeline = create_pipeline()
        try:
            yield
        finally:
            await app.state.pipeline.aclose()

    app = FastAPI(title="Document Analyzer", version="0.1.0", lifespan=lifespan)
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.include_router(api_router)
    return app


app = create_app()
