"""
Phase timer
阶段计时器 - 每个房间一个 asyncio 倒计时任务

剩余时间每 TIMER_SYNC_INTERVAL 秒写入一次存储，倒计时结束时调用
RoundOrchestrator.expire_phase；房间已离开该阶段时到期调用不产生任何变化。
"""

import asyncio
import logging
from typing import Dict, Optional, Tuple

from chameleon.core.config import settings
from chameleon.schemas.game import GamePhase, RoomSnapshot

logger = logging.getLogger(__name__)


# 有倒计时的阶段
TIMED_PHASES = frozenset({GamePhase.PRESENTING, GamePhase.DISCUSSION, GamePhase.VOTING, GamePhase.RESULTS})

# (阶段, 回合, 当前轮次) - 三者不变时沿用正在运行的倒计时
TimerKey = Tuple[GamePhase, int, int]


class PhaseTimer:
    """房间阶段倒计时"""

    def __init__(self, orchestrator, sync_interval: Optional[int] = None, tick: float = 1.0):
        self.orchestrator = orchestrator
        self.sync_interval = sync_interval or settings.TIMER_SYNC_INTERVAL
        self.tick = tick
        self._tasks: Dict[str, asyncio.Task] = {}
        self._keys: Dict[str, TimerKey] = {}

    def follow(self, room: RoomSnapshot) -> None:
        """根据房间最新快照启动、保持或停止倒计时"""
        if room.state not in TIMED_PHASES or not room.timer:
            self.cancel(room.id)
            return

        key = (room.state, room.round, room.current_turn)
        if self._keys.get(room.id) == key and self.is_running(room.id):
            return
        self.start(room.id, room.state, room.timer, key)

    def start(self, room_id: str, phase: GamePhase, seconds: int, key: Optional[TimerKey] = None) -> None:
        self.cancel(room_id)
        key = key or (phase, 0, 0)
        self._keys[room_id] = key
        # 描述阶段的到期调用带上启动时的轮次
        self._tasks[room_id] = asyncio.create_task(self._run(room_id, phase, seconds, key[2]))
        logger.info(f"[TIMER] Room {room_id}: {phase.value} countdown {seconds}s started")

    def cancel(self, room_id: str) -> None:
        task = self._tasks.pop(room_id, None)
        self._keys.pop(room_id, None)
        # 到期回调中重新启动计时时，当前任务会自然结束
        if task and task is not asyncio.current_task() and not task.done():
            task.cancel()

    def is_running(self, room_id: str) -> bool:
        task = self._tasks.get(room_id)
        return task is not None and not task.done()

    async def _run(self, room_id: str, phase: GamePhase, seconds: int, turn: int = 0):
        remaining = seconds
        try:
            while remaining > 0:
                await asyncio.sleep(self.tick)
                remaining -= 1
                if remaining > 0 and remaining % self.sync_interval == 0:
                    if not await self.orchestrator.sync_timer(room_id, phase, remaining):
                        logger.debug(f"[TIMER] Room {room_id} left {phase.value}, countdown stopped")
                        return

            result = await self.orchestrator.expire_phase(room_id, phase, turn)
            if not result.success:
                logger.error(f"[TIMER] Room {room_id}: {phase.value} expiry failed: {result.message}")

        except asyncio.CancelledError:
            logger.debug(f"[TIMER] Room {room_id}: {phase.value} countdown cancelled")
            raise
        except Exception as e:
            logger.error(f"[TIMER] Room {room_id}: countdown error: {e}")

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        self._keys.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
