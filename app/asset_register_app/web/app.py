from __future__ import annotations

import time
import uuid

from fastapi import FastAPI, Request

from asset_register_app.core.env import (
    ASSETREG_API_DOCS_ENABLED,
    ASSETREG_REQUEST_ID_HEADER_ENABLED,
    get_env_bool,
)
from asset_register_app.imports.service import BulkImportService
from asset_register_app.infrastructure.logging import get_logger, setup_app_logging
from asset_register_app.web.core.runtime import get_config, get_import_service
from asset_register_app.web.http.exception_handlers import register_exception_handlers
from asset_register_app.web.routers import router as web_router

LOGGER = get_logger(__name__)


def create_app(service: BulkImportService | None = None) -> FastAPI:
    setup_app_logging()
    config = get_config()
    request_id_header_enabled = get_env_bool(ASSETREG_REQUEST_ID_HEADER_ENABLED, default=True)
    api_docs_enabled = get_env_bool(ASSETREG_API_DOCS_ENABLED, default=config.is_dev_env)

    app = FastAPI(
        title="Asset Register Bulk Import",
        docs_url="/docs" if api_docs_enabled else None,
        redoc_url=None,
        openapi_url="/openapi.json" if api_docs_enabled else None,
    )
    app.state.bulk_import_service = service if service is not None else get_import_service()

    @app.middleware("http")
    async def _request_id_middleware(request: Request, call_next):
        request_id = uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        started = time.perf_counter()
        response = await call_next(request)
        if request_id_header_enabled:
            response.headers.setdefault("X-Request-ID", request_id)
        LOGGER.debug(
            "Request complete. method=%s path=%s status=%s",
            request.method,
            request.url.path,
            response.status_code,
            extra={
                "event": "request_complete",
                "request_id": request_id,
                "method": request.method,
                "path": str(request.url.path),
                "status_code": int(response.status_code),
                "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
            },
        )
        return response

    register_exception_handlers(app)
    app.include_router(web_router)

    LOGGER.info(
        "Asset register app created. env=%s reference_policy=%s",
        config.env,
        config.reference_policy,
        extra={"event": "app_created", "env": config.env},
    )
    return app
