import logging
import os

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from ..errors import FormwrightException, SubmissionValidationError
from .routes import field_types, forms, submit

logger = logging.getLogger(__name__)


def create_app(config_obj=None) -> FastAPI:
    from ..config import Config
    from ..db import close_db, create_tables, init_db
    from ..ratelimit import RateLimiter
    from ..services import FormService

    if config_obj is None:
        config_file = os.environ.get("CONFIG_FILE", "config.toml")
        config_obj = Config.load_from_file(config_file)

    app = FastAPI(title="Formwright API", debug=config_obj.web.debug)

    app.state.config = config_obj

    rate_limiter = RateLimiter.from_config(config_obj.rate_limit) if config_obj.rate_limit.enabled else None
    app.state.form_service = FormService(rate_limiter=rate_limiter)

    init_db(config_obj.database.path)
    create_tables()

    api_router = APIRouter(prefix="/api/v1")
    api_router.include_router(field_types.router)
    api_router.include_router(forms.router)
    api_router.include_router(submit.router)
    app.include_router(api_router)

    @app.exception_handler(SubmissionValidationError)
    def handle_validation_error(request: Request, exc: SubmissionValidationError):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.public_message,
                "details": [error.to_dict() for error in exc.errors],
            },
        )

    @app.exception_handler(FormwrightException)
    def handle_formwright_error(request: Request, exc: FormwrightException):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})

    @app.exception_handler(Exception)
    def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.on_event("shutdown")
    def shutdown_db():
        close_db()

    return app
