import logging

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status

from hirelink.core.config import Settings, get_settings
from hirelink.core.security import authenticate_bearer_token
from hirelink.services.fanout import SessionRegistry, get_session_registry

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws")
async def live_session(
    websocket: WebSocket,
    token: str | None = Query(default=None),
    settings: Settings = Depends(get_settings),
    registry: SessionRegistry = Depends(get_session_registry),
) -> None:
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        principal = await authenticate_bearer_token(token, settings)
    except HTTPException as exc:
        logger.info("live session rejected status=%s detail=%s", exc.status_code, exc.detail)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    if principal.participant_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    participant_id = principal.participant_id
    await websocket.accept()
    previous = registry.set(participant_id, websocket)
    if previous is not None:
        logger.info("live session replaced participant_id=%s", participant_id)
    logger.info("live session opened participant_id=%s sessions=%s", participant_id, len(registry))

    try:
        while True:
            text = await websocket.receive_text()
            if text.strip().lower() == "ping":
                await websocket.send_json({"event": "pong", "data": {}})
    except WebSocketDisconnect:
        pass
    finally:
        registry.remove(participant_id, websocket)
        logger.info("live session closed participant_id=%s sessions=%s", participant_id, len(registry))
