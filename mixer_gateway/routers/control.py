"""Operator WebSocket channel (hello / control ack).

The channel never talks to a DSP. Control messages only mark operator
activity so the updater can avoid deploying mid-show.
"""

import json
import logging
import time

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from ..constants import APP_NAME
from ..services import config, mark_operator_activity
from ..services.runtime import GatewayRuntime, get_gateway_runtime

logger = logging.getLogger(__name__)

router = APIRouter(tags=["control"])


def _parse_message(text: str) -> dict | None:
    try:
        payload = json.loads(text)
    except ValueError:
        logger.debug("Ignoring non-JSON WebSocket message: %r", text[:80])
        return None
    return payload if isinstance(payload, dict) else None


@router.websocket("/ws")
async def operator_socket(
    websocket: WebSocket,
    runtime: GatewayRuntime = Depends(get_gateway_runtime),
):
    """Greet the UI, then acknowledge each control message."""
    await websocket.accept()
    runtime.ws_clients += 1
    try:
        await websocket.send_json(
            {"type": "hello", "app": APP_NAME, "ts": int(time.time() * 1000)}
        )
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = message.get("text")
            if text is None:
                text = (message.get("bytes") or b"").decode("utf-8", errors="replace")

            payload = _parse_message(text)
            if payload is None or payload.get("type") != "control":
                continue
            mark_operator_activity(config.activity_file())
            await websocket.send_json({"type": "ack", "id": payload.get("id")})
    except WebSocketDisconnect:
        pass
    finally:
        runtime.ws_clients -= 1
