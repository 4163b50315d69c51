"""OpenTelemetry export for model calls made through Agent Framework clients."""

from __future__ import annotations

import logging
from typing import Optional

from agent_framework.observability import setup_observability

from .config import AppSettings

logger = logging.getLogger(__name__)

_configured_endpoint: Optional[str] = None


def tracing_endpoint() -> Optional[str]:
    """OTLP endpoint spans are exported to, or ``None`` when tracing is off."""

    return _configured_endpoint


def initialize_tracing(settings: AppSettings) -> bool:
    """Export spans to ``settings.otlp_endpoint``.

    The exporter is process-wide, so only the first successful call takes
    effect; it is the only call that returns True.
    """

    global _configured_endpoint
    if _configured_endpoint is not None:
        if settings.otlp_endpoint != _configured_endpoint:
            logger.warning(
                "Tracing already exports to %s; ignoring %s",
                _configured_endpoint,
                settings.otlp_endpoint,
            )
        return False

    if not settings.otlp_endpoint:
        logger.info("Tracing skipped because ROUTER_OTLP_ENDPOINT is not set.")
        return False

    try:
        setup_observability(
            otlp_endpoint=settings.otlp_endpoint,
            enable_sensitive_data=settings.trace_sensitive_data,
        )
    except Exception as exc:  # noqa: BLE001 - tracing never blocks serving
        logger.warning("Tracing initialization failed: %s", exc)
        return False

    _configured_endpoint = settings.otlp_endpoint
    logger.info(
        "Tracing exports to %s (message content %s)",
        settings.otlp_endpoint,
        "included" if settings.trace_sensitive_data else "redacted",
    )
    return True
