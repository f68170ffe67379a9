"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
error handlers, lifespan events for database and service initialization,
and the API router.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.nodal_point.api.errors import register_error_handlers
from src.nodal_point.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.nodal_point.api.routes.router import router as api_router
from src.nodal_point.calls import CallRepository, CallService
from src.nodal_point.config import get_settings
from src.nodal_point.core.database import close_db, get_session, init_db
from src.nodal_point.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.nodal_point.intelligence import MarketIntelligenceRepository, ScrapeTrigger
from src.nodal_point.market import (
    EiaClient,
    ErcotClient,
    ErcotForecastSource,
    ForecastPoller,
    StrikeListRepository,
)
from src.nodal_point.services.assembly import AssemblyAIService
from src.nodal_point.services.llm import LLMService
from src.nodal_point.services.maps import MapsService
from src.nodal_point.services.zoho import ZohoConnectionRepository, ZohoService
from src.nodal_point.telephony import TwilioClient


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init DB, Sentry and services on startup, close on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    # Proxy and market routes keep working without the database; only the
    # database-backed routes answer 503.
    db_ready = True
    try:
        await init_db()
    except Exception:
        db_ready = False
        log.warning("startup.database_unavailable", exc_info=True)

    # ── Vendor clients ──────────────────────────────────────────────────
    twilio_client = TwilioClient(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)
    app.state.twilio_client = twilio_client
    app.state.ercot_client = ErcotClient()
    app.state.eia_client = EiaClient(settings.EIA_API_KEY)
    app.state.llm_service = LLMService(settings)
    app.state.maps_service = MapsService(settings.GOOGLE_MAPS_API_KEY, settings.MAPBOX_ACCESS_TOKEN)
    app.state.assembly_service = AssemblyAIService(
        settings.ASSEMBLYAI_API_KEY, settings.ASSEMBLYAI_TOKEN_TTL_SECONDS
    )
    app.state.zoho_service = ZohoService(
        client_id=settings.ZOHO_CLIENT_ID,
        client_secret=settings.ZOHO_CLIENT_SECRET,
        redirect_uri=settings.ZOHO_REDIRECT_URI,
        accounts_url=settings.ZOHO_ACCOUNTS_URL,
        mail_url=settings.ZOHO_MAIL_URL,
    )
    app.state.scrape_trigger = ScrapeTrigger(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_ROLE_KEY,
        settings.SCRAPE_FUNCTION_NAME,
    )

    # ── Database-backed services ────────────────────────────────────────
    if db_ready:
        call_repository = CallRepository(session_factory=get_session)
        app.state.call_repository = call_repository
        app.state.call_service = CallService(
            call_repository, twilio_client, settings.business_numbers()
        )
        app.state.intelligence_repository = MarketIntelligenceRepository(get_session)
        app.state.strike_list_repository = StrikeListRepository(get_session)
        app.state.zoho_repository = ZohoConnectionRepository(get_session)
        log.info("startup.repositories_initialized")
    else:
        app.state.call_repository = None
        app.state.call_service = None
        app.state.intelligence_repository = None
        app.state.strike_list_repository = None
        app.state.zoho_repository = None

    # ── 4CP forecast poller ─────────────────────────────────────────────
    poller = ForecastPoller(ErcotForecastSource(app.state.ercot_client))
    app.state.forecast_poller = poller
    if settings.FORECAST_POLL_ENABLED:
        poller.start()

    yield

    # ── Shutdown ────────────────────────────────────────────────────────
    poller.stop()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Nodal Point API",
        version="0.1.0",
        description="CRM and sales-operations API for ERCOT energy brokers",
        lifespan=lifespan,
    )

    register_error_handlers(app)

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(api_router)

    # Prometheus metrics endpoint (infrastructure route, outside the API router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
