"""LeXAssist service entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from lexassist.adapters.analysis_generator import AnalysisGenerator, GeminiAnalysisStrategy
from lexassist.adapters.gemini_client import GeminiClient
from lexassist.adapters.notification_bus import NotificationBus
from lexassist.adapters.notifications import DomainEventPublisher
from lexassist.adapters.repositories import (
    ActivityRepository,
    ConversationRepository,
    DocumentRepository,
    MessageRepository,
    UserRepository,
)
from lexassist.adapters.response_generator import ResponseGenerator
from lexassist.adapters.task_runner import BackgroundTaskRunner
from lexassist.api.realtime import router as realtime_router
from lexassist.api.router import router
from lexassist.core.services import (
    ActivityService,
    ConversationService,
    DocumentIngestionService,
    DocumentQueryService,
    TaskOrchestrator,
)
from lexassist.database import create_engine, create_session_factory, init_database
from lexassist.errors import LexAssistError
from lexassist.observability import configure_logging, get_logger
from lexassist.settings import Settings

logger = get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application and wire its dependencies.

    Args:
        settings: Service settings; read from the environment when None.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or Settings()
    configure_logging(settings.log_level, settings.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage application startup and shutdown lifecycle.

        Args:
            app: The FastAPI application instance.

        Yields:
            None
        """
        # Startup
        engine = create_engine(settings.database_url, echo=settings.database_echo)
        await init_database(engine)
        session_factory = create_session_factory(engine)

        users = UserRepository(session_factory)
        documents = DocumentRepository(session_factory)
        activities = ActivityRepository(session_factory)
        conversations = ConversationRepository(session_factory)
        messages = MessageRepository(session_factory)

        http_client = httpx.AsyncClient()
        api_key = settings.gemini_api_key.get_secret_value() if settings.gemini_api_key else None
        gemini = GeminiClient(
            http_client=http_client,
            api_key=api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            timeout_seconds=settings.gemini_timeout_seconds,
        )
        if not gemini.is_configured:
            logger.warning("Gemini API key not set, using template and keyword fallbacks only")

        bus = NotificationBus()
        runner = BackgroundTaskRunner()
        orchestrator = TaskOrchestrator(
            documents=documents,
            activities=activities,
            users=users,
            conversations=conversations,
            messages=messages,
            analysis_generator=AnalysisGenerator(
                GeminiAnalysisStrategy(gemini) if gemini.is_configured else None
            ),
            response_generator=ResponseGenerator(gemini),
            event_publisher=DomainEventPublisher(bus),
            task_runner=runner,
            default_jurisdiction=settings.default_jurisdiction,
            chat_preview_length=settings.chat_preview_length,
        )

        app.state.settings = settings
        app.state.user_repository = users
        app.state.notification_bus = bus
        app.state.task_runner = runner
        app.state.orchestrator = orchestrator
        app.state.ingestion_service = DocumentIngestionService(
            documents=documents,
            activities=activities,
            orchestrator=orchestrator,
            max_upload_bytes=settings.max_upload_bytes,
            allowed_mime_types=settings.allowed_mime_types,
        )
        app.state.document_query_service = DocumentQueryService(documents)
        app.state.activity_service = ActivityService(activities, settings.activity_list_limit)
        app.state.conversation_service = ConversationService(conversations, messages, orchestrator)
        app.state.ready = True
        logger.info("Service started", service=settings.service_name, version=settings.version)

        yield

        # Shutdown
        app.state.ready = False
        await runner.drain()
        await http_client.aclose()
        await engine.dispose()
        logger.info("Service stopped", service=settings.service_name)

    app = FastAPI(title="LeXAssist", version=settings.version, lifespan=lifespan)
    app.state.ready = False

    @app.exception_handler(LexAssistError)
    async def handle_domain_error(request: Request, exc: LexAssistError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": jsonable_errors(exc)})

    @app.get("/live", tags=["health"])
    async def live() -> dict:
        return {"status": "ok"}

    @app.get("/ready", tags=["health"])
    async def ready(request: Request) -> JSONResponse:
        is_ready = bool(request.app.state.ready)
        return JSONResponse(
            status_code=200 if is_ready else 503,
            content={"status": "ready" if is_ready else "starting"},
        )

    app.include_router(router, prefix="/api/v1")
    app.include_router(realtime_router)
    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Reduce request validation errors to their location and message."""
    return [{"loc": list(error.get("loc", ())), "msg": error.get("msg", "")} for error in exc.errors()]


app: FastAPI = create_app()
