from __future__ import annotations

import asyncio
import logging
import time

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from deskwatch.api.services.engine import MonitorEngine
from deskwatch.api.services.state import get_engine

router = APIRouter()

logger = logging.getLogger(__name__)


def _is_closed_send_error(exc: BaseException) -> bool:
    # Uvicorn raises this when an ASGI websocket.send happens after close.
    if not isinstance(exc, RuntimeError):
        return False
    msg = str(exc)
    return "Unexpected ASGI message 'websocket.send'" in msg or "response already completed" in msg


@router.websocket("/stream/metadata")
async def stream_metadata(ws: WebSocket):
    """Push one JSON message per processed frame (status, counts, ledger)."""

    await ws.accept()
    engine: MonitorEngine = await asyncio.to_thread(get_engine)

    async def _poll_and_handle_ping() -> None:
        # Avoid concurrent send() calls: this is called from the send loop.
        if not hasattr(ws, "receive_json"):
            return
        try:
            msg = await asyncio.wait_for(ws.receive_json(), timeout=0.001)
        except asyncio.TimeoutError:
            return
        except WebSocketDisconnect:
            raise
        except Exception:
            return

        if not isinstance(msg, dict) or msg.get("type") != "ping":
            return
        try:
            await ws.send_json({"type": "pong", "t": msg.get("t"), "server_time": time.time()})
        except Exception as e:
            if _is_closed_send_error(e) or isinstance(e, WebSocketDisconnect):
                raise WebSocketDisconnect() from e

    try:
        async for payload in engine.metadata_stream():
            await _poll_and_handle_ping()
            try:
                await ws.send_json(payload)
            except WebSocketDisconnect:
                return
            except Exception as e:
                if _is_closed_send_error(e):
                    return
                # Keep the websocket alive even if one frame fails serialization.
                logger.exception("Failed to send metadata frame")
                await asyncio.sleep(0.05)
    except WebSocketDisconnect:
        return
    except Exception:
        logger.exception("Metadata websocket crashed")
        try:
            await ws.close(code=1011)
        except RuntimeError:
            logger.debug("Websocket already closed")
