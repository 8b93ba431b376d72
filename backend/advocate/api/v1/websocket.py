import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from advocate.core.exceptions import UnauthorizedException
from advocate.core.security import decode_access_token
from advocate.db.session import get_session_factory
from advocate.models.user import User
from advocate.realtime.call_router import call_router
from advocate.realtime.events import LiveEventDispatcher
from advocate.realtime.relay import relay
from advocate.realtime.rooms import Connection, manager
from advocate.services.auth_service import get_active_user

logger = logging.getLogger(__name__)

router = APIRouter()

# application-defined close code, mirrors HTTP 401
WS_CLOSE_UNAUTHORIZED = 4401


def _extract_token(websocket: WebSocket) -> Optional[str]:
    token = websocket.query_params.get("token")
    if token:
        return token

    authorization = websocket.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials

    return None


def _load_user(session_factory: Callable[[], Session], user_id: int) -> Optional[User]:
    with session_factory() as db:
        return get_active_user(db, user_id)


@router.websocket("/ws")
async def live_channel(
    websocket: WebSocket,
    session_factory: Callable[[], Session] = Depends(get_session_factory),
):
    token = _extract_token(websocket)
    user = None

    if token:
        try:
            claims = decode_access_token(token)
            user = await run_in_threadpool(_load_user, session_factory, claims["user_id"])
        except UnauthorizedException:
            user = None

    if user is None:
        logger.info("Rejected live connection: authentication failed")
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return

    await websocket.accept()

    connection = Connection(websocket, user.id, user.role)
    await manager.connect(connection)

    dispatcher = LiveEventDispatcher(connection, session_factory, manager, relay, call_router)

    try:
        while True:
            raw = await websocket.receive_text()
            await dispatcher.dispatch(raw)

    except WebSocketDisconnect as exc:
        if exc.code != status.WS_1000_NORMAL_CLOSURE:
            logger.info("User %s socket closed with code %s", user.id, exc.code)

    finally:
        await manager.disconnect(connection)
