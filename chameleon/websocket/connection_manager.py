"""
WebSocket连接管理器
管理玩家WebSocket连接和房间变更广播，实现房间通知接口
"""

import json
import logging
import asyncio
from typing import Dict, Set, Optional, List, Any
from datetime import datetime
from fastapi import WebSocket

from chameleon.schemas.game import GamePhase
from chameleon.services.notifier import RoomNotifier, room_changed_message

logger = logging.getLogger(__name__)


class ConnectionManager(RoomNotifier):
    """
    WebSocket连接管理器
    每个玩家最多一个连接，连接归属于一个房间
    """

    def __init__(self, max_connections: int = 200, ping_interval: int = 20):
        # 活跃连接: player_id -> WebSocket
        self.active_connections: Dict[str, WebSocket] = {}

        # 房间连接映射: room_id -> Set[player_id]
        self.room_connections: Dict[str, Set[str]] = {}

        # 玩家房间映射: player_id -> room_id
        self.player_rooms: Dict[str, str] = {}

        # 连接元数据: player_id -> connection_info
        self.connection_metadata: Dict[str, Dict[str, Any]] = {}

        self.max_connections = max_connections
        self.ping_interval = ping_interval

        self._heartbeat_tasks: Dict[str, asyncio.Task] = {}

    async def connect(self, player_id: str, websocket: WebSocket, room_id: str) -> bool:
        """建立连接并加入房间"""
        if len(self.active_connections) >= self.max_connections:
            logger.warning(f"Connection limit reached, rejecting player {player_id}")
            return False

        await websocket.accept()

        # 同一玩家重复连接时替换旧连接
        if player_id in self.active_connections:
            await self.disconnect(player_id, "New connection established")

        self.active_connections[player_id] = websocket
        self.connection_metadata[player_id] = {
            "connected_at": datetime.now(),
            "last_ping": datetime.now(),
            "room_id": room_id,
        }
        self.join_room(player_id, room_id)
        self._start_heartbeat(player_id)

        logger.info(f"Player {player_id} connected to WebSocket in room {room_id}")
        return True

    async def disconnect(self, player_id: str, reason: str = "Connection closed") -> None:
        task = self._heartbeat_tasks.pop(player_id, None)
        if task and task is not asyncio.current_task():
            task.cancel()

        room_id = self.player_rooms.get(player_id)
        if room_id:
            self.leave_room(player_id, room_id)

        websocket = self.active_connections.pop(player_id, None)
        if websocket is not None:
            try:
                await websocket.close(code=1000, reason=reason)
            except Exception as e:
                # 连接可能已经关闭
                logger.debug(f"Close failed for player {player_id}: {e}")

        self.connection_metadata.pop(player_id, None)
        logger.info(f"Player {player_id} disconnected: {reason}")

    def join_room(self, player_id: str, room_id: str) -> None:
        old_room_id = self.player_rooms.get(player_id)
        if old_room_id and old_room_id != room_id:
            self.leave_room(player_id, old_room_id)

        self.room_connections.setdefault(room_id, set()).add(player_id)
        self.player_rooms[player_id] = room_id

    def leave_room(self, player_id: str, room_id: str) -> None:
        members = self.room_connections.get(room_id)
        if members is not None:
            members.discard(player_id)
            if not members:
                del self.room_connections[room_id]

        if self.player_rooms.get(player_id) == room_id:
            del self.player_rooms[player_id]

    def mark_alive(self, player_id: str) -> None:
        """收到客户端消息（pong 等）时刷新心跳时间"""
        if player_id in self.connection_metadata:
            self.connection_metadata[player_id]["last_ping"] = datetime.now()

    async def send_to_player(self, player_id: str, message: dict) -> bool:
        websocket = self.active_connections.get(player_id)
        if websocket is None:
            return False
        try:
            await websocket.send_text(json.dumps(message, default=str))
            return True
        except Exception as e:
            logger.error(f"Error sending message to player {player_id}: {e}")
            return False

    async def broadcast_to_room(self, room_id: str, message: dict, exclude_player: Optional[str] = None) -> int:
        """广播消息到房间所有连接，返回成功发送的数量"""
        sent_count = 0
        for player_id in list(self.room_connections.get(room_id, set())):
            if player_id == exclude_player:
                continue
            if await self.send_to_player(player_id, message):
                sent_count += 1

        logger.info(f"[BROADCAST] Sent '{message.get('type', 'unknown')}' to {sent_count} players in room {room_id}")
        return sent_count

    async def notify_room_changed(self, room_id: str, phase: Optional[GamePhase] = None) -> None:
        await self.broadcast_to_room(room_id, room_changed_message(room_id, phase))

    def _start_heartbeat(self, player_id: str) -> None:
        """启动心跳监控"""
        async def heartbeat_task():
            try:
                while player_id in self.active_connections:
                    await asyncio.sleep(self.ping_interval)

                    if player_id not in self.active_connections:
                        break

                    # 超过 3 个心跳周期没有响应则断开
                    last_pong = self.connection_metadata.get(player_id, {}).get("last_ping")
                    if last_pong and (datetime.now() - last_pong).total_seconds() > self.ping_interval * 3:
                        logger.warning(f"Player {player_id} heartbeat timeout, disconnecting")
                        await self.disconnect(player_id, "Heartbeat timeout")
                        break

                    await self.send_to_player(player_id, {
                        "type": "ping",
                        "data": {"timestamp": datetime.now().isoformat()}
                    })

            except asyncio.CancelledError:
                logger.debug(f"Heartbeat task cancelled for player {player_id}")

        existing = self._heartbeat_tasks.get(player_id)
        if existing:
            existing.cancel()
        self._heartbeat_tasks[player_id] = asyncio.create_task(heartbeat_task())

    def get_connection_count(self) -> int:
        return len(self.active_connections)

    def get_room_players(self, room_id: str) -> List[str]:
        return list(self.room_connections.get(room_id, set()))

    def is_player_connected(self, player_id: str) -> bool:
        return player_id in self.active_connections


# 全局连接管理器实例
connection_manager = ConnectionManager()
