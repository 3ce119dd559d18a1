"""
app/messaging/websocket.py

Messaging WebSocket Route

Live messaging view for an authenticated user:
- Authenticates the client from header, cookie or `token` query parameter
- Pushes the unread badge whenever a message to the user is inserted or read
- {"action": "open", "jobId", "counterpartId"?} loads a conversation and follows it live
- {"action": "send", "jobId", "receiverId", "content"} sends a message
- {"action": "close"} ends the session

Server frames have the shape {"type": ..., "data": ...} with type one of
history, message, unread_count, sent, error.
"""

import json
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.dependencies import get_current_user_from_ws
from app.core.exceptions import APIError
from app.database.models import User
from app.database.session import get_db, get_session_factory
from app.messaging import schemas
from app.messaging.realtime import bridge
from app.messaging.viewer import ConversationView

# ---------------------------------------------------
# Router Configuration
# ---------------------------------------------------
router = APIRouter(prefix="/messages")
logger = logging.getLogger(__name__)


def _to_jsonable(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, list):
        return [_to_jsonable(item) for item in data]
    return data


async def _send_frame(websocket: WebSocket, kind: str, data: Any) -> None:
    await websocket.send_text(json.dumps({"type": kind, "data": _to_jsonable(data)}))


async def _send_error(websocket: WebSocket, message: str) -> None:
    await _send_frame(websocket, "error", {"error": message})


# ---------------------------------------------------
# WebSocket Endpoint
# ---------------------------------------------------
@router.websocket("/ws")
async def messages_websocket(
    websocket: WebSocket,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> None:
    """
    Handle a live messaging session for the authenticated user.
    """

    try:
        user: User = await get_current_user_from_ws(websocket, db)
        logger.info(f"[WEBSOCKET] Authenticated user {user.id}")
    except APIError as e:
        logger.warning(f"[WEBSOCKET] Authentication failed: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return None

    await websocket.accept()

    async def push(kind: str, data: Any) -> None:
        await _send_frame(websocket, kind, data)

    view = ConversationView(user.id, session_factory, bridge=bridge, on_change=push)
    try:
        await view.start()
        while True:
            raw_data = await websocket.receive_text()
            logger.debug(f"[WEBSOCKET] Received from {user.id}: {raw_data}")

            try:
                data = json.loads(raw_data)
            except json.JSONDecodeError:
                logger.warning(f"[WEBSOCKET] Invalid JSON format from user {user.id}")
                await _send_error(websocket, "Ungültiges JSON-Format")
                continue
            if not isinstance(data, dict):
                await _send_error(websocket, "Ungültiges Nachrichtenformat")
                continue

            action = data.get("action")
            try:
                if action == "open":
                    try:
                        job_id = UUID(str(data.get("jobId")))
                        raw_counterpart = data.get("counterpartId")
                        counterpart_id = UUID(str(raw_counterpart)) if raw_counterpart else None
                    except ValueError:
                        await _send_error(websocket, "jobId oder counterpartId ist ungültig")
                        continue
                    await view.open(job_id, counterpart_id)

                elif action == "send":
                    try:
                        payload = schemas.MessageCreate.model_validate(data)
                    except PydanticValidationError:
                        await _send_error(websocket, "jobId, receiverId und content sind erforderlich")
                        continue
                    message = await view.send(payload.job_id, payload.receiver_id, payload.content)
                    await push("sent", message)

                elif action == "close":
                    break

                else:
                    await _send_error(websocket, f"Unbekannte Aktion: {action}")

            except APIError as e:
                logger.info(f"[WEBSOCKET] Action '{action}' by {user.id} rejected: {e.message}")
                await _send_error(websocket, e.message)

        await websocket.close()

    except WebSocketDisconnect as exc:
        logger.info(f"[WEBSOCKET] User {user.id} disconnected (code: {exc.code})")
    except Exception as e:
        logger.error(
            f"[WEBSOCKET] Unexpected error in WebSocket lifecycle for user {user.id}: {e}",
            exc_info=True,
        )
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason="Internal server error")
    finally:
        await view.close()

    return None
