import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.config import REQUIRED_AT_STARTUP, get_settings
from storefront.database import Base, engine
from storefront.errors import StorefrontError, ValidationError
from storefront import models  # noqa: F401  registers tables on Base.metadata
from storefront.routes import router
from storefront.stripe_service import configure_stripe_client

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app() -> FastAPI:
    settings = get_settings()
    # Missing secrets are fatal at startup, never silently defaulted
    settings.require(*REQUIRED_AT_STARTUP)

    configure_logging(settings.log_level)
    configure_stripe_client(settings.stripe_timeout_seconds)

    app = FastAPI(title="Vinyl Store Orders")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        return JSONResponse(status_code=400, content=ValidationError(problems).to_dict())

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(router)

    Base.metadata.create_all(bind=engine)

    return app


app = create_app()
