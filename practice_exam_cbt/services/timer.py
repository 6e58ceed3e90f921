"""
services/timer.py

시험 카운트다운 타이머.
1초마다 tick → 남은 시간 감소, 0이 되는 tick에서 스스로 멈추고 강제 종료 콜백을 정확히 1회 호출.
이벤트 루프 위에서 사용자 조작과 번갈아 실행될 뿐, 병렬로 실행되지 않는다.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from config import TICK_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class CountdownTimer:

    def __init__(
        self,
        seconds: int,
        on_expire: Callable[[], Awaitable[object]],
        on_tick: Optional[Callable[[int], None]] = None,
        interval: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        self.remaining = max(0, int(seconds))
        self.ticks = 0
        self.error: Optional[BaseException] = None
        self._on_expire = on_expire
        self._on_tick = on_tick
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self._expire_task: Optional[asyncio.Task] = None
        self._stopped = False
        self._expired = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def expired(self) -> bool:
        return self._expired

    def start(self) -> None:
        if self._stopped or self.running:
            return
        if self.remaining == 0:
            self._expire()
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        """이후 tick 없음. 화면 해제 또는 시험 종료 시 호출."""
        self._stopped = True
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def tick(self) -> None:
        if self._stopped:
            return
        self.remaining = max(0, self.remaining - 1)
        self.ticks += 1
        if self._on_tick:
            self._on_tick(self.remaining)
        if self.remaining == 0:
            self._expire()

    async def wait_expired(self) -> None:
        """강제 종료 콜백이 끝날 때까지 대기 (테스트/호스트용)."""
        if self._expire_task is not None:
            await asyncio.shield(self._expire_task)

    # ── 내부 ─────────────────────────────────────────────────────────────────

    async def _run(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self._interval)
            self.tick()

    def _expire(self) -> None:
        if self._expired:
            return
        self._expired = True
        self.stop()
        logger.info("시험 시간 종료 — 강제 제출")
        self._expire_task = asyncio.get_running_loop().create_task(self._fire())

    async def _fire(self) -> None:
        try:
            await self._on_expire()
        except Exception as e:
            # 강제 종료 실패는 호스트가 error를 보고 재시도한다
            logger.error(f"강제 종료 실패: {type(e).__name__}: {e}")
            self.error = e
