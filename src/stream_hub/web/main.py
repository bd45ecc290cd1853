from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

from stream_hub.config import HubConfig
from stream_hub.utils.log import BroadcastLogHandler, configure_logging
from . import responses
from .events import Broadcaster
from .generators import GeneratorManager
from .sse import event_stream


logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()


class BroadcastRequest(BaseModel):
    stream_id: Optional[str] = None
    type: str = ""
    message: str = ""
    data: Optional[Dict[str, Any]] = None


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


def get_generators(request: Request) -> GeneratorManager:
    return request.app.state.generators


@router.get("/", response_class=HTMLResponse)
def dashboard(request: Request, hub: Broadcaster = Depends(get_broadcaster)) -> HTMLResponse:
    gens = get_generators(request).statuses()
    return templates.TemplateResponse(
        request,
        "index.html",
        {"streams": hub.active_streams(), "generators": gens, "total": hub.total_subscribers()},
    )


@router.get("/events/stream/{stream_id}")
async def stream_events(stream_id: str, hub: Broadcaster = Depends(get_broadcaster)) -> StreamingResponse:
    headers = {
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "Access-Control-Allow-Origin": "*",
        "X-Accel-Buffering": "no",
    }
    return StreamingResponse(event_stream(hub, stream_id), media_type="text/event-stream", headers=headers)


@router.post("/events/broadcast")
def broadcast_event(req: BroadcastRequest, hub: Broadcaster = Depends(get_broadcaster)) -> JSONResponse:
    if not req.type or not req.message:
        return responses.bad_request("Type and message are required")
    if req.stream_id:
        delivered = hub.publish(req.stream_id, req.type, req.message, req.data)
        msg = f"Event broadcasted to stream: {req.stream_id}"
    else:
        delivered = hub.publish_to_all(req.type, req.message, req.data)
        msg = "Event broadcasted to all streams"
    return responses.success({"delivered": delivered}, msg)


@router.get("/events/streams")
def list_streams(hub: Broadcaster = Depends(get_broadcaster)) -> JSONResponse:
    streams = {sid: {"clients": n, "active": True} for sid, n in hub.active_streams().items()}
    data = {
        "streams": streams,
        "total_clients": hub.total_subscribers(),
        "stream_count": hub.stream_count(),
    }
    return responses.success(data, "Active streams retrieved")


@router.post("/events/stream/{stream_id}/start")
def start_stream(stream_id: str, gens: GeneratorManager = Depends(get_generators)) -> JSONResponse:
    if gens.start(stream_id):
        return responses.success(None, f"Stream '{stream_id}' created and started", status_code=201)
    return responses.success(None, f"Stream '{stream_id}' restarted")


@router.post("/events/stream/{stream_id}/stop")
def stop_stream(stream_id: str, gens: GeneratorManager = Depends(get_generators)) -> JSONResponse:
    if not gens.stop(stream_id):
        return responses.not_found(f"Stream '{stream_id}' not found")
    return responses.success(None, f"Stream '{stream_id}' stopped and removed")


@router.get("/health")
def health(request: Request, hub: Broadcaster = Depends(get_broadcaster)) -> JSONResponse:
    uptime = int(time.time() - request.app.state.started_at)
    data = {
        "uptime_sec": uptime,
        "streams": hub.stream_count(),
        "subscribers": hub.total_subscribers(),
        "generators": get_generators(request).statuses(),
    }
    return responses.success(data, "ok")


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = {
        "errors": [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
    }
    return responses.bad_request("Invalid request body", details)


def create_app(config: Optional[HubConfig] = None, broadcaster: Optional[Broadcaster] = None) -> FastAPI:
    """Build the HTTP service around one broadcaster instance.

    Demo generators and the log-mirroring handler are started on startup and
    torn down on shutdown; shutting down also releases every SSE subscriber.
    """
    cfg = config or HubConfig()
    hub = broadcaster or Broadcaster(queue_size=cfg.queue_size)
    generators = GeneratorManager(hub, interval=cfg.demo_interval_secs)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        root = logging.getLogger()
        previous_level = root.level
        # Also covers `uvicorn stream_hub.web.main:app`, which bypasses the serve CLI
        configure_logging(cfg.log_level)
        handler: Optional[BroadcastLogHandler] = None
        if cfg.log_stream:
            handler = BroadcastLogHandler(hub, cfg.log_stream)
            root.addHandler(handler)
        for stream_id in cfg.demo_streams:
            generators.start(stream_id)
        logger.info("Stream hub ready (queue size %d, demo streams: %s)", hub.queue_size, cfg.demo_streams or "none")
        try:
            yield
        finally:
            generators.stop_all()
            if handler is not None:
                root.removeHandler(handler)
            root.setLevel(previous_level)
            hub.close()

    app = FastAPI(title="Stream Hub", lifespan=lifespan)
    app.state.config = cfg
    app.state.broadcaster = hub
    app.state.generators = generators
    app.state.started_at = time.time()
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.include_router(router)
    return app


app = create_app()
