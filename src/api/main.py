"""FastAPI application for the Redactly image redaction service."""

import logging
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version, PackageNotFoundError

import gradio as gr
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import get_settings, load_settings
from .errors import register_exception_handlers
from .logging_config import setup_logging
from .middleware import RequestIDMiddleware
from .rate_limit import limiter
from .routes import health_router, sessions_router
from .service import close_pipeline, get_pipeline

logger = logging.getLogger(__name__)


def _get_version() -> str:
    try:
        return pkg_version("redactly")
    except PackageNotFoundError:
        return "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = load_settings()
    setup_logging(log_level=settings.log_level, log_format=settings.log_format)
    logger.info("Starting Redactly API")
    logger.info(
        "Detection service=%s, LLM provider=%s, capacity=%d",
        settings.detection_api_url,
        settings.llm_provider,
        settings.max_sessions,
    )
    get_pipeline()
    yield
    logger.info("Shutting down")
    await close_pipeline()


app = FastAPI(
    title="Redactly API",
    description=(
        "Detects personally identifiable information and signatures in "
        "document images and produces redacted copies."
    ),
    version=_get_version(),
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_exception_handlers(app)

settings = get_settings()
allow_all = settings.cors_origins_list == ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=not allow_all,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)

app.include_router(health_router)
app.include_router(sessions_router)

from ui.app import create_ui

gradio_app = create_ui()
app = gr.mount_gradio_app(app, gradio_app, path="/")


def main():
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
    )


if __name__ == "__main__":
    main()
