"""
FastAPI application serving the exporter over HTTP.

Routes:
- ``GET /metrics``: runs one catalog walk and returns the Prometheus text
  exposition.  Under the ``abort`` policy a failed walk answers 503.
- ``GET /health``: outcome of the last walk, without touching the bus.
- ``GET /``: liveness probe.

``/metrics`` is a plain ``def`` route, so FastAPI runs the blocking bus
walk in its threadpool; :class:`~pmbus_exporter.src.scrape.Exporter`
serialises overlapping scrapes.

CHANGELOG:
- 2026-10-16: Add /health route
- 2026-10-15: Initial creation
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from pmbus_exporter.src import __version__
from pmbus_exporter.src.bus import BusAccessor
from pmbus_exporter.src.errors import ScrapeError
from pmbus_exporter.src.metrics import MetricSink
from pmbus_exporter.src.registers import DEFAULT_POINTS, load_points
from pmbus_exporter.src.scrape import Exporter
from prometheus_client import CONTENT_TYPE_LATEST

if TYPE_CHECKING:
    from pmbus_exporter.src.config import ExporterSettings
    from pmbus_exporter.src.registers import MeasurementPoint

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
async def root() -> dict[str, str]:
    """Root liveness endpoint."""
    return {"status": "ok"}


@router.get("/metrics")
def metrics(request: Request) -> Response:
    """Walk the catalog and return the exposition body."""
    exporter: Exporter = request.app.state.exporter
    try:
        body = exporter.scrape()
    except ScrapeError as exc:
        logger.error("Scrape failed: %s", exc)
        return PlainTextResponse(f"scrape failed: {exc}\n", status_code=503)
    return Response(content=body, media_type=CONTENT_TYPE_LATEST)


@router.get("/health", tags=["health"])
async def health(request: Request) -> dict[str, Any]:
    """Return the outcome of the most recent walk."""
    exporter: Exporter = request.app.state.exporter
    return exporter.health.snapshot()


def build_exporter(
    settings: ExporterSettings,
    *,
    bus: BusAccessor | None = None,
    points: Sequence[MeasurementPoint] | None = None,
    sink: MetricSink | None = None,
) -> Exporter:
    """Assemble an :class:`Exporter` from settings.

    Collaborators passed explicitly replace the ones derived from
    *settings*.

    Raises:
        CatalogError: If ``settings.points_file`` cannot be loaded.
    """
    if bus is None:
        bus = BusAccessor(
            settings.device,
            pec=settings.pec,
            persistent=settings.persistent_handle,
            timeout_ms=settings.bus_timeout_ms,
        )
    if points is None:
        points = (
            load_points(settings.points_file)
            if settings.points_file
            else DEFAULT_POINTS
        )
    if sink is None:
        sink = MetricSink(prefix=settings.metric_prefix)
    return Exporter(
        bus=bus,
        points=points,
        sink=sink,
        failure_policy=settings.failure_policy,
    )


def create_app(settings: ExporterSettings, **overrides: Any) -> FastAPI:
    """Application factory.

    Args:
        settings: Validated exporter settings.
        **overrides: Forwarded to :func:`build_exporter` (``bus``,
            ``points``, ``sink``).
    """
    exporter = build_exporter(settings, **overrides)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(
            "PMBus exporter ready: %d measurement points on %s (policy=%s)",
            len(exporter.points),
            exporter.bus.device_path,
            exporter.failure_policy,
        )
        yield
        exporter.bus.close()
        logger.info("PMBus exporter shutting down")

    app = FastAPI(
        title="PMBus exporter",
        description="Prometheus exporter for PMBus power-supply telemetry.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.exporter = exporter
    app.include_router(router)
    return app
