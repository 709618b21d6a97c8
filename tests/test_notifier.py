"""
Room notification tests
房间变更通知测试
"""

import json
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from chameleon.core.exceptions import CollaboratorError
from chameleon.schemas.game import GamePhase
from chameleon.services.notifier import BroadcastNotifier, RedisRoomNotifier
from chameleon.websocket.connection_manager import ConnectionManager


class FakeWebSocket:
    """记录发送内容的 WebSocket 替身"""

    def __init__(self):
        self.accepted = False
        self.sent = []
        self.closed = False

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        self.sent.append(json.loads(text))

    async def close(self, code=1000, reason=None):
        self.closed = True


class FakeRedisManager:
    def __init__(self, fail=False):
        self.fail = fail
        self.published = []

    async def publish_message(self, channel, message):
        if self.fail:
            raise RedisConnectionError("redis down")
        self.published.append((channel, message))
        return 1


class TestConnectionManager:
    """测试 WebSocket 广播"""

    async def test_room_change_reaches_room_members_only(self):
        manager = ConnectionManager(ping_interval=3600)
        alice, bob, carol = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
        await manager.connect("alice", alice, "room1")
        await manager.connect("bob", bob, "room1")
        await manager.connect("carol", carol, "room2")

        await manager.notify_room_changed("room1", GamePhase.VOTING)

        expected = {"type": "room_updated", "data": {"room_id": "room1", "phase": "voting"}}
        assert alice.sent == [expected]
        assert bob.sent == [expected]
        assert carol.sent == []

        await manager.disconnect("alice")
        await manager.disconnect("bob")
        await manager.disconnect("carol")
        assert manager.get_connection_count() == 0
        assert manager.get_room_players("room1") == []

    async def test_reconnect_replaces_old_socket(self):
        manager = ConnectionManager(ping_interval=3600)
        old, new = FakeWebSocket(), FakeWebSocket()
        await manager.connect("alice", old, "room1")
        await manager.connect("alice", new, "room1")

        assert old.closed
        assert manager.active_connections["alice"] is new
        await manager.disconnect("alice")

    async def test_connection_limit(self):
        manager = ConnectionManager(max_connections=1, ping_interval=3600)
        assert await manager.connect("alice", FakeWebSocket(), "room1")
        assert not await manager.connect("bob", FakeWebSocket(), "room1")
        await manager.disconnect("alice")


class TestRedisNotifier:
    """测试 Redis 发布"""

    async def test_publishes_on_room_channel(self):
        redis = FakeRedisManager()
        await RedisRoomNotifier(redis, prefix="room").notify_room_changed("abc", GamePhase.RESULTS)

        channel, message = redis.published[0]
        assert channel == "room:abc"
        assert message["type"] == "room_updated"
        assert message["data"]["phase"] == "results"

    async def test_failure_is_retryable(self):
        with pytest.raises(CollaboratorError) as exc_info:
            await RedisRoomNotifier(FakeRedisManager(fail=True)).notify_room_changed("abc")
        assert exc_info.value.retryable

    async def test_broadcast_fans_out(self):
        first, second = FakeRedisManager(), FakeRedisManager()
        notifier = BroadcastNotifier([RedisRoomNotifier(first), RedisRoomNotifier(second)])
        await notifier.notify_room_changed("abc", GamePhase.LOBBY)
        assert len(first.published) == len(second.published) == 1
