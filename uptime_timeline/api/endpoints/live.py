"""Live timeline over a WebSocket.

Each connection mounts its own ``TimelineView`` for as long as the client
stays connected. The current snapshot is sent on connect, after every
rebuild, and at least once per heartbeat period. Clients may send
``{"scope": "<all|default|region|agent>"}`` to switch sources or
``{"refetch": true}`` to force a fetch.
"""

import asyncio
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from uptime_timeline.core.config import settings
from uptime_timeline.core.logger import get_logger
from uptime_timeline.domain.models import SourceScope
from uptime_timeline.services.timeline_view import TimelineView

router = APIRouter(prefix="/services")

logger = get_logger("api.live")


async def _send_updates(websocket: WebSocket, view: TimelineView) -> None:
    while True:
        await websocket.send_json(view.snapshot().model_dump(mode="json"))
        await view.wait_changed(settings.live_heartbeat_seconds)


async def _apply_command(websocket: WebSocket, view: TimelineView, message: Any):
    if not isinstance(message, dict):
        await websocket.send_json({"error": "expected a JSON object"})
        return
    if "scope" in message:
        try:
            scope = SourceScope.parse(message["scope"])
        except ValueError as e:
            await websocket.send_json({"error": str(e)})
            return
        await view.select_scope(scope)
    if message.get("refetch"):
        await view.refetch()


async def _receive_commands(websocket: WebSocket, view: TimelineView) -> None:
    while True:
        message = await websocket.receive_json()
        await _apply_command(websocket, view, message)


@router.websocket("/{service_id}/timeline/live")
async def live_timeline(websocket: WebSocket, service_id: str, scope: str = "all"):
    state = websocket.app.state
    try:
        source_scope = SourceScope.parse(scope)
    except ValueError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    service = await state.reader.get_service(service_id)
    if service is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    view = TimelineView(state.fetcher, state.subscriber)
    async with view:
        await view.mount(service, source_scope)
        logger.info(
            "live_timeline_connected",
            extra={"service_id": service_id, "scope": str(source_scope)},
        )
        tasks = [
            asyncio.create_task(_send_updates(websocket, view)),
            asyncio.create_task(_receive_commands(websocket, view)),
        ]
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning(
                    "live_timeline_failed",
                    extra={"service_id": service_id, "error": str(exc)},
                )
    logger.info("live_timeline_disconnected", extra={"service_id": service_id})
