#!/usr/bin/env python3
"""
数据库初始化脚本
创建房间/玩家表结构，检查 Redis，并可选写入一个演示房间

用法:
  python scripts/init_database.py            # 只建表
  python scripts/init_database.py --demo 5   # 建表并创建5人演示房间 demo
"""

import sys
import asyncio

from chameleon.core.config import settings
from chameleon.core.database import init_db, close_db, db_manager
from chameleon.core.redis_client import init_redis, close_redis, redis_manager
from chameleon.schemas.game import PlayerState, RoomSettings, RoomSnapshot
from chameleon.services.storage import SqlAlchemyRoomStore


def parse_demo_size(argv):
    """--demo N，缺省 N 为最少开局人数"""
    if "--demo" not in argv:
        return None
    index = argv.index("--demo")
    if index + 1 < len(argv):
        return int(argv[index + 1])
    return settings.MIN_PLAYERS


def demo_room(player_count: int) -> RoomSnapshot:
    players = [
        PlayerState(id=f"demo-{i}", name=f"Player {i}", is_host=(i == 1), is_ready=True)
        for i in range(1, player_count + 1)
    ]
    return RoomSnapshot(id="demo", players=players, settings=RoomSettings())


async def run(demo_size):
    print(f"数据库: {settings.DATABASE_URL}")
    await init_db()
    print("表结构初始化完成")

    await init_redis()
    if redis_manager.available:
        print(f"Redis 连接成功: {settings.REDIS_URL}")
    else:
        print("Redis 不可用，房间变更只推送给本进程的 WebSocket 连接")

    if demo_size:
        store = SqlAlchemyRoomStore(db_manager)
        if await store.load_room("demo") is None:
            await store.create_room(demo_room(demo_size))
            print(f"演示房间 demo 已创建（{demo_size}名玩家，房主 demo-1）")
        else:
            print("演示房间 demo 已存在，跳过")

    await close_redis()
    await close_db()


def main():
    print("=" * 50)
    print("  变色龙派对游戏 - 数据库初始化脚本")
    print("=" * 50)

    try:
        asyncio.run(run(parse_demo_size(sys.argv[1:])))
    except Exception as e:
        print(f"\n初始化失败: {e}")
        sys.exit(1)

    print("\n现在可以启动后端服务：")
    print("  python run.py")


if __name__ == "__main__":
    main()
