"""
FastAPI application for TripMate.

Usage:
    # Development server with auto-reload
    uvicorn tripmate.api.main:app --reload --host 0.0.0.0 --port 8000

    # Debug mode (verbose logging)
    LOG_LEVEL=DEBUG uvicorn tripmate.api.main:app --reload --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import config
from ..guardrail import TopicGuardrail
from ..history import HistoryStore, InMemoryHistoryStore
from ..models import AppConfig
from ..orchestration import ModelClient, OpenAIModelClient
from ..service import ChatService
from ..tools import ToolRegistry, WeatherService, build_default_registry
from ..tracing import init_tracing_client, shutdown_tracing
from .routes import chat, health


def configure_logging(level: Optional[str] = None):
    """Configure logging based on the LOG_LEVEL setting."""
    log_level = getattr(logging, (level or config.log_level).upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("tripmate").setLevel(log_level)


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    app_config: AppConfig = app.state.app_config
    logger.info("Starting TripMate API server")

    logger.info("=" * 60)
    logger.info("MODEL")
    logger.info(f"  Base URL: {app_config.model.base_url}")
    logger.info(f"  Model: {app_config.model.name}")
    logger.info(f"  Credentials: {'SET' if app_config.model.is_configured else 'MISSING'}")
    logger.info(f"  Max Steps: {app_config.orchestrator.max_steps}")
    logger.info(
        f"  Tool choice after step 0: {app_config.orchestrator.tool_choice_after_first_step}"
    )

    logger.info("-" * 60)
    logger.info("REGISTERED TOOLS")
    for name, tool in app.state.registry.all_tools().items():
        logger.info(f"  - {name}: {tool.description[:60]}")

    logger.info("-" * 60)
    logger.info(
        f"GUARDRAIL: {'ENABLED' if app.state.chat_service and app.state.chat_service.guardrail else 'DISABLED'}"
    )
    logger.info(
        f"HISTORY: capacity={app_config.history.capacity}, "
        f"compact_threshold={app_config.history.compact_threshold}"
    )

    logger.info("-" * 60)
    logger.info("LANGFUSE OBSERVABILITY")
    tracing_client = init_tracing_client(
        public_key=app_config.langfuse.public_key,
        secret_key=app_config.langfuse.secret_key,
        host=app_config.langfuse.host,
        debug=app_config.langfuse.debug,
    )
    if tracing_client.enabled:
        logger.info("  Status: ENABLED")
        logger.info(f"  Host: {app_config.langfuse.host or 'https://cloud.langfuse.com'}")
    else:
        logger.info("  Status: DISABLED")
        if tracing_client.error:
            logger.info(f"  Reason: {tracing_client.error}")
    logger.info("=" * 60)

    yield

    logger.info("Shutting down TripMate API server")
    if app.state.weather_service is not None:
        await app.state.weather_service.aclose()
    model_client = app.state.model_client
    if model_client is not None and hasattr(model_client, "aclose"):
        await model_client.aclose()
    shutdown_tracing()
    logger.info("Tracing client shutdown complete")


def create_app(
    app_config: Optional[AppConfig] = None,
    model_client: Optional[ModelClient] = None,
    history_store: Optional[HistoryStore] = None,
    registry: Optional[ToolRegistry] = None,
    guardrail: Optional[TopicGuardrail] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Every collaborator can be injected; anything omitted is built from
    ``app_config``. Without gateway credentials the app still starts and
    /api/chat answers 503.

    Returns:
        Configured FastAPI application instance.
    """
    app_config = app_config or config

    app = FastAPI(
        title="TripMate API",
        description=(
            "Travel assistant chat API. Responses stream as Server-Sent Events "
            "of typed message parts."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS middleware - allow all origins for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[chat.CONVERSATION_HEADER],
    )

    weather_service: Optional[WeatherService] = None
    if registry is None:
        weather_service = WeatherService(app_config.tools.weather)
        registry = build_default_registry(weather_service=weather_service)

    if history_store is None:
        history_store = InMemoryHistoryStore(
            capacity=app_config.history.capacity,
            compact_threshold=app_config.history.compact_threshold,
        )

    if model_client is None and app_config.model.is_configured:
        model_client = OpenAIModelClient(app_config.model)
    if model_client is None:
        logger.warning("AI_GATEWAY_API_KEY is not configured; /api/chat will answer 503")

    if guardrail is None and app_config.guardrail.enabled:
        guardrail = TopicGuardrail(
            keywords=app_config.guardrail.keywords,
            redirect_messages=app_config.guardrail.redirect_messages,
        )

    app.state.app_config = app_config
    app.state.history_store = history_store
    app.state.registry = registry
    app.state.model_client = model_client
    app.state.weather_service = weather_service
    app.state.chat_service = (
        ChatService(
            app_config=app_config,
            model_client=model_client,
            history=history_store,
            registry=registry,
            guardrail=guardrail,
        )
        if model_client is not None
        else None
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(chat.router, tags=["Chat"])

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Log validation errors before returning 400 response."""
        logger.warning(
            f"Validation error on {request.method} {request.url.path}: {exc.errors()}"
        )
        body = await request.body()
        logger.debug(f"Request body: {body.decode('utf-8', errors='replace')[:1000]}")
        return JSONResponse(
            status_code=400,
            content={"detail": jsonable_errors(exc)},
        )

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without values that may not serialize."""
    return [
        {key: err[key] for key in ("type", "loc", "msg") if key in err}
        for err in exc.errors()
    ]


# Create the application instance
app = create_app()


def run_server():
    """
    Run the server using uvicorn.

    This is the entry point for the ``tripmate-server`` command.
    """
    import uvicorn

    uvicorn.run(
        "tripmate.api.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
        workers=1 if config.server.reload else config.server.workers,
    )


if __name__ == "__main__":
    run_server()
