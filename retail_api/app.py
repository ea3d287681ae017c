from contextlib import asynccontextmanager
from typing import Optional

from azure.core.exceptions import HttpResponseError
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from retail_api.config import load_settings
from retail_api.exceptions import (
    BusinessRuleError,
    DuplicateKeyError,
    NotFoundError,
    PreconditionFailedError,
    StorageError,
)
from retail_api.logging_config import get_child_logger, tracer
from retail_api.routes.customer_route import router as customer_router
from retail_api.routes.home_route import router as home_router
from retail_api.routes.order_route import router as order_router
from retail_api.routes.product_route import router as product_router
from retail_api.routes.upload_route import router as upload_router
from retail_api.storage import StorageService

logger = get_child_logger("app")


async def start_storage(app: FastAPI) -> StorageService:
    """
    Attach the process-wide StorageService to the app, building it from the
    environment if none was supplied, and provision storage.

    Raises:
        ConfigurationError: If the connection string is not configured
    """
    storage: Optional[StorageService] = getattr(app.state, "storage", None)
    if storage is None:
        storage = StorageService.from_settings(load_settings())
        app.state.storage = storage
    if not storage.is_ready:
        await storage.initialize()
    return storage


@asynccontextmanager
async def lifespan(app: FastAPI):
    storage = await start_storage(app)
    logger.info("Retail API started")
    try:
        yield
    finally:
        await storage.close()
        logger.info("Retail API stopped")


def _error_response(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


def create_app(storage: Optional[StorageService] = None) -> FastAPI:
    app = FastAPI(
        title="Retail API",
        version="1.0.0",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )
    app.state.storage = storage

    @app.exception_handler(NotFoundError)
    async def handle_not_found(_: Request, exc: NotFoundError):
        return _error_response(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(PreconditionFailedError)
    async def handle_precondition_failed(_: Request, exc: PreconditionFailedError):
        return _error_response(status.HTTP_412_PRECONDITION_FAILED, str(exc))

    @app.exception_handler(DuplicateKeyError)
    async def handle_duplicate_key(_: Request, exc: DuplicateKeyError):
        return _error_response(status.HTTP_409_CONFLICT, str(exc))

    @app.exception_handler(BusinessRuleError)
    async def handle_business_rule(_: Request, exc: BusinessRuleError):
        return _error_response(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        cause = exc.original_exception
        status_code = cause.status_code if isinstance(cause, HttpResponseError) else None
        with tracer.start_as_current_span("handle_storage_error") as span:
            span.set_attribute("error", True)
            span.set_attribute("error.type", "storage_error")
            span.set_attribute("error.status_code", status_code or 0)

            # Credential failures keep their status
            if status_code in (401, 403):
                logger.warning(
                    "Azure Storage authentication error",
                    extra={"status_code": status_code, "path": request.url.path},
                )
                return _error_response(
                    status_code, "Unauthorized" if status_code == 401 else "Forbidden"
                )

            logger.error(
                "Storage error",
                extra={"status_code": status_code, "path": request.url.path, "error": str(exc)},
                exc_info=cause,
            )
            return _error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR, "A storage error occurred."
            )

    @app.exception_handler(ValueError)
    async def handle_value_error(_: Request, exc: ValueError):
        return _error_response(status.HTTP_400_BAD_REQUEST, str(exc))

    app.include_router(home_router)
    app.include_router(product_router)
    app.include_router(customer_router)
    app.include_router(order_router)
    app.include_router(upload_router)
    return app
