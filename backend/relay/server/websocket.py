from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from relay.messaging.encoder import DecodeError, decode
from relay.messaging.protocol import ConnectionProtocol
from relay.server.rate_limit import InboundRateLimiter

if TYPE_CHECKING:
    from relay.messaging.router import MessageRouter
    from relay.server.settings import RelayServerSettings

logger = structlog.get_logger()

_FORBIDDEN_ORIGIN_CLOSE_CODE = 4003


class WebSocketConnection(ConnectionProtocol):
    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self._connection_id = connection_id or str(uuid4())

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def is_open(self) -> bool:
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, data: str) -> None:
        try:
            await self._websocket.send_text(data)
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def receive_text(self) -> str:
        message = await self._websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise ConnectionError("WebSocket already disconnected")
        text = message.get("text")
        if text is None:
            # Binary frames are accepted if they hold UTF-8 JSON.
            text = (message.get("bytes") or b"").decode("utf-8", errors="replace")
        return text

    async def close(self, code: int = 1000, reason: str = "") -> None:
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await self._websocket.close(code=code, reason=reason)


def _origin_allowed(websocket: WebSocket, allowed_origins: list[str]) -> bool:
    if not allowed_origins:
        return True
    return websocket.headers.get("origin", "") in allowed_origins


async def websocket_endpoint(
    websocket: WebSocket,
    router: MessageRouter,
    settings: RelayServerSettings,
) -> None:
    if not _origin_allowed(websocket, settings.ws_allowed_origins):
        logger.info("websocket rejected", reason="forbidden_origin", origin=websocket.headers.get("origin"))
        await websocket.close(code=_FORBIDDEN_ORIGIN_CLOSE_CODE, reason="forbidden_origin")
        return

    await websocket.accept()

    connection = WebSocketConnection(websocket)
    log = logger.bind(connection_id=connection.connection_id)
    log.info("websocket connected")
    await router.handle_connect(connection)

    limiter = InboundRateLimiter.from_settings(settings)

    try:
        while True:
            raw = await connection.receive_text()
            if not limiter.admit_frame():
                log.warning("rate limited, dropping frame")
                continue

            # Malformed frames are dropped without a reply.
            try:
                data = decode(raw, max_bytes=settings.max_message_bytes)
            except DecodeError as e:
                log.debug("dropping undecodable frame", error=str(e))
                continue

            message_type = data.get("type")
            if not limiter.admit(message_type):
                log.warning("rate limited, dropping message", message_type=message_type)
                continue
            await router.handle_message(connection, data)
    except (WebSocketDisconnect, RuntimeError, ConnectionError):
        pass
    except Exception:
        log.exception("unexpected error in relay websocket")
    finally:
        log.info("websocket disconnected")
        await router.handle_disconnect(connection)
