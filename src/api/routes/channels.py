import asyncio
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from src.adapters.channels import ChannelHub, user_channel
from src.api.auth_utils import token_subject
from src.api.deps import get_channel_hub

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/users/{user_id}")
async def user_events(
    websocket: WebSocket,
    user_id: UUID,
    token: str | None = None,
    hub: ChannelHub = Depends(get_channel_hub),
) -> None:
    """Private push channel of one user. The token's subject must match."""
    if token_subject(token) != user_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    # Subscribe before accepting so no event published after the handshake is missed
    queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
    unsubscribe = hub.subscribe_queue(user_channel(user_id), queue, asyncio.get_running_loop())
    await websocket.accept()

    async def forward() -> None:
        while True:
            event = await queue.get()
            await websocket.send_json(event)

    sender = asyncio.create_task(forward())
    try:
        while True:
            # Client messages are ignored; receiving detects disconnects
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Channel %s disconnected", user_channel(user_id))
    finally:
        sender.cancel()
        unsubscribe()
