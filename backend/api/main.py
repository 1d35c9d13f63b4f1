"""
FastAPI main application.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.dependencies import Container, build_container
from api.routes import clips, videos
from core.config import API_PREFIX, CORS_ORIGINS, ENABLE_POLLER, LOG_LEVEL
from core.config_validator import ConfigurationError, ConfigValidator
from core.errors import ApplicationError

logger = logging.getLogger(__name__)


def validate_configuration() -> None:
    """Validate configuration on application startup."""
    logger.info("Validating configuration...")
    validation_result = ConfigValidator().validate_all()

    for warning in validation_result["warnings"]:
        logger.warning(warning)

    if not validation_result["valid"]:
        for error in validation_result["errors"]:
            logger.error(error)
        raise ConfigurationError("Application startup aborted due to configuration errors")

    logger.info("Configuration validated successfully")


def create_app(container: Optional[Container] = None) -> FastAPI:
    """
    Build the app. A pre-built container skips validation and the poller.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if container is not None:
            app.state.container = container
            yield
            return

        validate_configuration()
        app.state.container = build_container()
        if ENABLE_POLLER and app.state.container.poller is not None:
            app.state.container.poller.start()
        try:
            yield
        finally:
            await app.state.container.close()

    app = FastAPI(
        title="Clip Pipeline API",
        description="Video transcription and AI clip extraction",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ApplicationError)
    async def application_error_handler(request: Request, exc: ApplicationError):
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"detail": str(exc) or "Internal server error"})

    app.include_router(videos.router, prefix=f"{API_PREFIX}/videos", tags=["videos"])
    app.include_router(clips.router, prefix=f"{API_PREFIX}/clips", tags=["clips"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {"message": "Clip Pipeline API", "version": "1.0.0"}

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
