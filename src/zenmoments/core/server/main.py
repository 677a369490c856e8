"""Zen Moments server entry point — ``zen-moments`` or ``python -m zenmoments.core.server.main``.

``ZEN_TRANSPORT=stdio`` serves a single local client over stdin/stdout; the
default ``streamable-http`` transport listens on ``ZEN_HOST:ZEN_PORT``.
"""

from __future__ import annotations

import logging
from ipaddress import ip_address

from zenmoments.core.config.settings import Settings, get_settings
from zenmoments.core.server.app import create_app

TRANSPORTS = ("streamable-http", "stdio")


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def _check_bind(settings: Settings) -> None:
    # Telemetry and location history are served without an auth layer.
    if settings.zen_allow_insecure_bind or _is_loopback_host(settings.zen_host):
        return
    raise RuntimeError(
        f"Refusing to bind Zen Moments server to non-loopback host {settings.zen_host!r}: "
        "it would expose location history without authentication. "
        "Set ZEN_ALLOW_INSECURE_BIND=true to override (unsafe)."
    )


def run() -> None:
    """Start the Zen Moments MCP server on the configured transport."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.zen_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger = logging.getLogger(__name__)

    transport = settings.zen_transport
    if transport not in TRANSPORTS:
        raise RuntimeError(f"Unknown ZEN_TRANSPORT {transport!r}; expected one of {TRANSPORTS}")
    if transport == "streamable-http":
        _check_bind(settings)

    logger.info(
        "Sampling every %.0fs, relaxation when heart rate drops %.0f bpm and stress %.0f points",
        settings.sample_interval_seconds,
        settings.heart_rate_drop_threshold,
        settings.stress_drop_threshold,
    )
    if settings.simulation_mode:
        logger.warning("Simulation mode is on: telemetry is synthetic")

    mcp = create_app()
    if transport == "stdio":
        logger.info("Starting Zen Moments server on stdio")
        mcp.run(transport="stdio")
        return

    logger.info("Starting Zen Moments server on %s:%d", settings.zen_host, settings.zen_port)
    mcp.run(transport="streamable-http", host=settings.zen_host, port=settings.zen_port)


if __name__ == "__main__":
    run()
