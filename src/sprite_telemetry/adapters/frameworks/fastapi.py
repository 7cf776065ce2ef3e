"""FastAPI adapter for the telemetry pipeline.

Mounts the Prometheus scrape endpoint, OTLP/HTTP ingestion, the read
accessors, and the real-time WebSocket on one router.
"""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import parse_qs

from fastapi import (
    APIRouter,
    FastAPI,
    Request,
    Response,
    WebSocket,
    WebSocketDisconnect,
)
from fastapi.responses import JSONResponse
from google.protobuf.json_format import ParseError
from google.protobuf.json_format import Parse as parse_json
from google.protobuf.message import DecodeError, Message
from opentelemetry.proto.collector.logs.v1.logs_service_pb2 import (
    ExportLogsServiceRequest,
    ExportLogsServiceResponse,
)
from opentelemetry.proto.collector.metrics.v1.metrics_service_pb2 import (
    ExportMetricsServiceRequest,
    ExportMetricsServiceResponse,
)
from starlette.websockets import WebSocketState

from sprite_telemetry.adapters.frameworks.query_params import (
    _parse_kinds_param,
    _parse_limit_param,
    _parse_minutes_param,
)
from sprite_telemetry.core.encoding.ndjson import (
    api_stats_to_dict,
    encode_events,
    record_to_dict,
    tool_stats_to_dict,
)
from sprite_telemetry.core.encoding.prometheus import PROMETHEUS_CONTENT_TYPE
from sprite_telemetry.runtime.service import TelemetryService

logger = logging.getLogger(__name__)

PROTOBUF_CONTENT_TYPE = "application/x-protobuf"
NDJSON_CONTENT_TYPE = "application/x-ndjson"


class WebSocketObserver:
    """Observer writing JSON messages to a Starlette WebSocket.

    ``send`` schedules the write on the running event loop and returns
    immediately. A write that fails marks the observer as not writable.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._pending: set[asyncio.Task[None]] = set()
        self._failed = False

    @property
    def writable(self) -> bool:
        return (
            not self._failed
            and self._websocket.client_state is WebSocketState.CONNECTED
            and self._websocket.application_state is WebSocketState.CONNECTED
        )

    def send(self, message: dict[str, Any]) -> None:
        task = asyncio.ensure_future(self._websocket.send_text(json.dumps(message)))
        self._pending.add(task)
        task.add_done_callback(self._on_sent)

    def _on_sent(self, task: "asyncio.Task[None]") -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        if task.exception() is not None:
            self._failed = True
            logger.debug("Telemetry WebSocket write failed: %s", task.exception())

    def cancel_pending(self) -> None:
        """Cancel writes that have not completed yet."""
        for task in list(self._pending):
            task.cancel()


def _query_params(request: Request) -> dict[str, list[str]]:
    return parse_qs(request.url.query)


def _decode_export(
    body: bytes, content_type: str, message_cls: type[Message]
) -> Message:
    """Decode an OTLP/HTTP request body as protobuf or JSON.

    Raises:
        DecodeError: If a protobuf body cannot be parsed.
        ParseError: If a JSON body cannot be parsed.
    """
    message = message_cls()
    if content_type.split(";")[0].strip() == "application/json":
        return parse_json(
            body.decode("utf-8", errors="replace"), message, ignore_unknown_fields=True
        )
    message.ParseFromString(body)
    return message


async def _handle_export(
    request: Request,
    message_cls: type[Message],
    ingest: Callable[[Any], object],
    response: Message,
    label: str,
) -> Response:
    """Decode and ingest one OTLP/HTTP export call.

    Failures are contained to this call: a body that does not decode gets
    a 400, a processing failure a 500.
    """
    body = await request.body()
    try:
        export = _decode_export(
            body, request.headers.get("content-type", ""), message_cls
        )
    except (DecodeError, ParseError, ValueError):
        logger.warning("Rejecting malformed %s export", label)
        return JSONResponse(
            status_code=400, content={"error": f"Malformed {label} export"}
        )
    try:
        ingest(export)
    except Exception:
        logger.exception("Error processing %s export", label)
        return JSONResponse(
            status_code=500, content={"error": "Internal Server Error"}
        )
    return Response(
        content=response.SerializeToString(), media_type=PROTOBUF_CONTENT_TYPE
    )


def create_telemetry_router(service: TelemetryService) -> APIRouter:
    """Create a FastAPI router exposing the telemetry pipeline.

    Args:
        service: The telemetry service backing every endpoint.

    Returns:
        APIRouter with /metrics, /v1/metrics, /v1/logs, /telemetry/... and
        the /telemetry/ws WebSocket configured.
    """
    router = APIRouter()

    @router.get("/metrics")
    async def get_metrics() -> Response:
        """Return lifecycle and aggregate metrics in Prometheus text format."""
        return Response(content=service.scrape(), media_type=PROMETHEUS_CONTENT_TYPE)

    @router.post("/v1/metrics")
    async def export_metrics(request: Request) -> Response:
        """OTLP/HTTP metrics export."""
        return await _handle_export(
            request,
            ExportMetricsServiceRequest,
            service.ingestor.ingest_metrics,
            ExportMetricsServiceResponse(),
            "metrics",
        )

    @router.post("/v1/logs")
    async def export_logs(request: Request) -> Response:
        """OTLP/HTTP logs export."""
        return await _handle_export(
            request,
            ExportLogsServiceRequest,
            service.ingestor.ingest_logs,
            ExportLogsServiceResponse(),
            "logs",
        )

    @router.get("/telemetry")
    async def get_all_telemetry() -> JSONResponse:
        """Return the totals of every known sandbox."""
        return JSONResponse(
            content=[record_to_dict(r) for r in service.get_all_telemetry()]
        )

    @router.get("/telemetry/{sprite}")
    async def get_sprite_telemetry(sprite: str) -> JSONResponse:
        """Return one sandbox's totals (zeros if it never reported)."""
        return JSONResponse(content=record_to_dict(service.get_sprite_telemetry(sprite)))

    @router.get("/telemetry/{sprite}/events")
    async def get_sprite_events(sprite: str, request: Request) -> Response:
        """Return recent events in NDJSON format.

        Query parameters:
            limit: Maximum number of events (default 100).
            type: Event kinds to include; repeatable or comma-separated.
        """
        params = _query_params(request)
        events = service.get_sprite_events(
            sprite, _parse_limit_param(params), _parse_kinds_param(params)
        )
        return Response(content=encode_events(events), media_type=NDJSON_CONTENT_TYPE)

    @router.get("/telemetry/{sprite}/timeline")
    async def get_sprite_timeline(sprite: str, request: Request) -> Response:
        """Return events of the last ``minutes`` minutes in NDJSON format."""
        minutes = _parse_minutes_param(_query_params(request))
        events = service.get_sprite_timeline(sprite, minutes)
        return Response(content=encode_events(events), media_type=NDJSON_CONTENT_TYPE)

    @router.get("/telemetry/{sprite}/stats/api")
    async def get_api_stats(sprite: str) -> JSONResponse:
        return JSONResponse(content=api_stats_to_dict(service.get_api_stats(sprite)))

    @router.get("/telemetry/{sprite}/stats/tools")
    async def get_tool_stats(sprite: str) -> JSONResponse:
        return JSONResponse(content=tool_stats_to_dict(service.get_tool_stats(sprite)))

    @router.websocket("/telemetry/ws")
    async def telemetry_websocket(websocket: WebSocket) -> None:
        """Stream telemetry and lifecycle updates to a real-time observer."""
        await websocket.accept()
        observer = WebSocketObserver(websocket)
        service.fanout.connect(observer)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                raw = message.get("text") or message.get("bytes")
                if raw is not None:
                    service.fanout.handle_message(observer, raw)
        except WebSocketDisconnect:
            pass
        finally:
            service.fanout.disconnect(observer)
            observer.cancel_pending()

    return router


def create_telemetry_app(service: TelemetryService) -> FastAPI:
    """Create a FastAPI application serving ``service``.

    The service (and with it the OTLP/gRPC gateway) is started and stopped
    with the application. Shutdown also closes the service, disconnecting
    every real-time observer.
    """

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
        """Start the service on startup, stop and close it on shutdown."""
        await service.start()
        try:
            yield
        finally:
            await service.stop()
            service.close()

    app = FastAPI(title="Sprite Telemetry", lifespan=lifespan)
    app.include_router(create_telemetry_router(service))
    return app
