"""Live dashboard screens over WebSocket.

A connection mounts one screen for its lifetime. The server pushes
``{"type": "state", ...}`` whenever the screen's state may have changed and
``{"type": "notice", ...}`` for every action outcome; the client sends
``{"action": ...}`` commands.
"""

import asyncio
import json
from typing import Any

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder

from app.config import settings
from app.core.exceptions import AuthMissing
from app.core.security import auth_context_from_token
from app.dependencies import Gateway
from app.schemas.common import Notice
from app.views.appointments import AppointmentsScreen
from app.views.base import Screen
from app.views.dashboard import DashboardScreen
from app.views.patients import PatientsScreen

logger = structlog.get_logger(__name__)

router = APIRouter()

SCREENS: dict[str, type[Screen]] = {
    PatientsScreen.name: PatientsScreen,
    AppointmentsScreen.name: AppointmentsScreen,
    DashboardScreen.name: DashboardScreen,
}

# WebSocket close codes
CLOSE_UNKNOWN_SCREEN = 4404
CLOSE_AUTH_MISSING = 4401

_STATE = {"type": "state"}


async def _send_updates(websocket: WebSocket, screen: Screen, outbox: asyncio.Queue) -> None:
    while True:
        message = await outbox.get()
        if message is _STATE:
            # Rendered at send time
            message = {"type": "state", **screen.render()}
        await websocket.send_json(jsonable_encoder(message))


@router.websocket("/{screen_name}")
async def screen_socket(
    websocket: WebSocket,
    screen_name: str,
    gateway: Gateway,
    token: str | None = Query(None),
) -> None:
    """
    Mount a dashboard screen for the lifetime of the connection.

    Args:
        websocket: Client connection
        screen_name: One of ``patients``, ``appointments``, ``dashboard``
        gateway: Data gateway
        token: Access token of the signed-in administrator
    """
    screen_class = SCREENS.get(screen_name)
    if screen_class is None:
        await websocket.close(code=CLOSE_UNKNOWN_SCREEN)
        return

    try:
        auth = auth_context_from_token(token)
    except AuthMissing as e:
        await websocket.close(code=CLOSE_AUTH_MISSING, reason=e.redirect_to)
        return

    await websocket.accept()

    screen = screen_class(gateway, auth, discard_stale=settings.store_discard_stale_responses)
    outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
    screen.on_change(lambda: outbox.put_nowait(_STATE))
    screen.on_notice(
        lambda notice: outbox.put_nowait({"type": "notice", **notice.model_dump(mode="json")})
    )

    async with screen.mounted():
        sender = asyncio.create_task(_send_updates(websocket, screen, outbox))
        outbox.put_nowait(_STATE)
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    command = json.loads(raw)
                except ValueError:
                    command = None
                if not isinstance(command, dict):
                    screen.notify(Notice.error("Commands must be JSON objects"))
                    continue
                await screen.handle(command)
        except WebSocketDisconnect:
            logger.info("screen_disconnected", screen=screen_name, user_id=auth.user_id)
        finally:
            sender.cancel()
            await asyncio.gather(sender, return_exceptions=True)
