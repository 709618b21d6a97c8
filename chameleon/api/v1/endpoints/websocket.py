"""
WebSocket endpoints
WebSocket连接端点 - 房间变更推送
"""

import json
import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from chameleon.api.v1.endpoints.rooms import get_orchestrator
from chameleon.core.exceptions import GameActionError
from chameleon.services.notifier import room_changed_message
from chameleon.services.orchestrator import RoundOrchestrator
from chameleon.websocket.connection_manager import connection_manager

logger = logging.getLogger(__name__)
router = APIRouter()


@router.websocket("/{room_id}/{player_id}")
async def websocket_room_endpoint(
    websocket: WebSocket,
    room_id: str,
    player_id: str,
    orchestrator: RoundOrchestrator = Depends(get_orchestrator)
):
    """
    房间WebSocket连接端点
    服务端只推送 room_updated，客户端收到后重新拉取房间快照
    """
    logger.info(f"[WS_CONNECT] Player {player_id} connecting to room {room_id}")

    try:
        room = await orchestrator.get_room(room_id)
    except GameActionError as e:
        logger.warning(f"[WS_CONNECT] Room {room_id} unavailable: {e.message}")
        await websocket.close(code=4004, reason="Room not found")
        return

    if room.get_player(player_id) is None:
        logger.warning(f"[WS_CONNECT] Player {player_id} is not in room {room_id}")
        await websocket.close(code=4003, reason="Player not in room")
        return

    connected = await connection_manager.connect(player_id, websocket, room_id)
    if not connected:
        await websocket.close(code=4002, reason="Connection failed")
        return

    # 连接后立即让客户端拉取一次当前状态
    await connection_manager.send_to_player(player_id, room_changed_message(room_id, room.state))

    try:
        while True:
            try:
                message_data = json.loads(await websocket.receive_text())
            except json.JSONDecodeError:
                await connection_manager.send_to_player(player_id, {
                    "type": "error",
                    "data": {"message": "Invalid JSON format"}
                })
                continue

            connection_manager.mark_alive(player_id)
            message_type = message_data.get("type") if isinstance(message_data, dict) else None

            if message_type == "ping":
                await connection_manager.send_to_player(player_id, {"type": "pong"})
            elif message_type == "pong":
                continue
            else:
                await connection_manager.send_to_player(player_id, {
                    "type": "error",
                    "data": {"message": f"Unknown message type: {message_type}"}
                })

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for player {player_id} in room {room_id}")

    finally:
        # 只清理连接，玩家仍在房间中
        if connection_manager.is_player_connected(player_id):
            await connection_manager.disconnect(player_id, "Connection closed")
