from contextlib import asynccontextmanager
from http import HTTPStatus
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from starlette.exceptions import HTTPException as StarletteHTTPException

import wemadeit.models  # noqa: F401
from wemadeit.api.routes import router as api_router
from wemadeit.core.config import get_settings
from wemadeit.core.context import RequestContextMiddleware
from wemadeit.core.database import Base, SessionLocal
from wemadeit.core.ui_settings import UiSettingsStore
from wemadeit.crm.api import error_response
from wemadeit.crm.seed import seed_if_needed
from wemadeit.logging import configure_logging
from wemadeit.middleware.correlation_id import CorrelationIdMiddleware
from wemadeit.middleware.rate_limit import CrmMutationRateLimitMiddleware
from wemadeit.middleware.request_logging import RequestLoggingMiddleware
from wemadeit.otel import get_fastapi_server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("wemadeit.lifecycle")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    app.state.ui_settings = UiSettingsStore.load(settings.ui_settings_path)

    if settings.auto_create_schema or settings.seed_on_startup:
        session = SessionLocal()
        try:
            if settings.auto_create_schema:
                Base.metadata.create_all(bind=session.get_bind())
            if settings.seed_on_startup:
                seed_if_needed(session, settings)
        finally:
            session.close()

    logger.info("system.started", extra={"operation": "startup"})
    yield
    logger.info("system.stopped", extra={"operation": "shutdown"})


app = FastAPI(title="WeMadeIt API", version="0.1.0", lifespan=lifespan)
app.add_middleware(CrmMutationRateLimitMiddleware)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    try:
        code = HTTPStatus(exc.status_code).phrase.lower().replace(" ", "_")
    except ValueError:
        code = "http_error"
    response = error_response(
        request,
        status_code=exc.status_code,
        code=code,
        message=str(exc.detail),
        details=exc.detail,
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


settings = get_settings()

if settings.otel_enabled:
    setup_otel("api", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
