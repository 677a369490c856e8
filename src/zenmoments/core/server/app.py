"""Zen Moments MCP Server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastmcp import FastMCP

from zenmoments.core.config.settings import get_settings
from zenmoments.core.storage.database import DatabaseError, FeedbackDatabase
from zenmoments.core.storage.encryption import EncryptionError, FieldEncryptor
from zenmoments.core.storage.repository import FeedbackRepository, RepositoryError
from zenmoments.domains.relaxation.connectors.location import PushLocationProvider
from zenmoments.domains.relaxation.connectors.notifications import OutboxNotificationChannel
from zenmoments.domains.relaxation.domain_logic.models import Location
from zenmoments.domains.relaxation.engine import MonitoringEngine, build_engine
from zenmoments.domains.relaxation.places import PlaceRecommender
from zenmoments.domains.relaxation.places.catalog import load_place_catalog
from zenmoments.domains.relaxation.places.overpass import OverpassPlaceSource
from zenmoments.domains.relaxation.places.recommender import ZenPlaceRecommender
from zenmoments.domains.relaxation.tools.relaxation_tools import register_relaxation_tools

logger = logging.getLogger(__name__)


def create_app(
    *,
    recommender_override: PlaceRecommender | None = None,
    location_provider_override: PushLocationProvider | None = None,
    channel_override: OutboxNotificationChannel | None = None,
    repository_override: FeedbackRepository | None = None,
) -> FastMCP:
    """Create and configure the Zen Moments MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Initializes the encrypted feedback store (when a key is configured)
    3. Builds the place recommender (Overpass with catalog fallback)
    4. Wires location, notification channel and the monitoring engine
    5. Registers all tools
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(_server: FastMCP) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await engine.aclose()
            logger.info("Monitoring engine released")

    # --- Server instance ---
    server = FastMCP(
        "Zen Moments",
        lifespan=lifespan,
        instructions=(
            "Wearable telemetry monitor that detects relaxation moments, "
            "suggests nearby calm places and collects feedback on whether "
            "each moment really was relaxing."
        ),
    )

    # --- Initialize encrypted storage (feedback store) ---
    repository: FeedbackRepository | None = None
    if repository_override is not None:
        repository = repository_override
    elif settings.encryption_key:
        try:
            encryptor = FieldEncryptor(settings.encryption_key)
            feedback_db = FeedbackDatabase(settings.db_path)
            feedback_db.initialize()
            repository = FeedbackRepository(
                feedback_db, encryptor, namespace=settings.feedback_namespace
            )
            logger.info(
                "Feedback store initialized: %s (schema v%d)",
                settings.db_path,
                feedback_db.get_schema_version(),
            )
            if "," in settings.encryption_key:
                repository.reencrypt_locations()
        except (EncryptionError, DatabaseError, RepositoryError) as exc:
            repository = None
            logger.error("Failed to initialize storage: %s", exc)
            logger.warning("Continuing without persistence — feedback will not be stored")
    else:
        logger.info(
            "No ENCRYPTION_KEY configured — running without persistence. "
            "Set ENCRYPTION_KEY to keep relaxation feedback across restarts."
        )

    # --- Place recommender ---
    if recommender_override is not None:
        recommender = recommender_override
    else:
        source = None
        if settings.overpass_enabled:
            source = OverpassPlaceSource(
                url=settings.overpass_url,
                radius_meters=settings.overpass_radius_meters,
                timeout_seconds=settings.enrichment_timeout_seconds,
            )
            logger.info("Overpass place lookups enabled: %s", settings.overpass_url)
        recommender = ZenPlaceRecommender(
            source,
            fallback=load_place_catalog(),
            default_location=Location(settings.default_latitude, settings.default_longitude),
        )

    # --- Location and notifications ---
    location_provider = (
        location_provider_override
        if location_provider_override is not None
        else PushLocationProvider()
    )
    channel = channel_override if channel_override is not None else OutboxNotificationChannel()

    # --- Monitoring engine ---
    engine: MonitoringEngine = build_engine(
        settings,
        channel=channel,
        recommender=recommender,
        repository=repository,
        location_provider=location_provider,
    )
    logger.info(
        "Monitoring engine ready (simulation=%s, %d samples in window)",
        settings.simulation_mode,
        len(engine.window),
    )

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        status = {
            "status": "ok",
            "server": "Zen Moments",
            "version": "0.1.0",
            "monitoring": engine.is_monitoring,
            "simulation_mode": settings.simulation_mode,
            "overpass_enabled": settings.overpass_enabled and recommender_override is None,
            "storage_enabled": repository is not None,
        }
        if repository is not None:
            status["feedback_stored"] = repository.count_feedback()
        return status

    register_relaxation_tools(
        server, engine, channel=channel, location_provider=location_provider
    )
    logger.info("Relaxation monitoring tools registered")

    return server


# Module-level instance for FastMCP discovery ("server": "...app.py:mcp").
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
