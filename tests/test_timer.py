import asyncio

import pytest

from practice_exam_cbt.services.timer import CountdownTimer

pytestmark = pytest.mark.asyncio


class _Expiry:
    def __init__(self):
        self.calls = 0

    async def __call__(self):
        self.calls += 1


async def test_sixty_ticks_expire_exactly_once():
    on_expire = _Expiry()
    seen = []
    timer = CountdownTimer(60, on_expire=on_expire, on_tick=seen.append)

    for _ in range(60):
        timer.tick()
    await timer.wait_expired()

    assert on_expire.calls == 1
    assert timer.remaining == 0
    assert timer.expired
    assert seen[-1] == 0 and len(seen) == 60

    # 0 이후 tick은 무시된다
    for _ in range(5):
        timer.tick()
    await asyncio.sleep(0)
    assert on_expire.calls == 1
    assert timer.ticks == 60


async def test_no_expiry_before_zero():
    on_expire = _Expiry()
    timer = CountdownTimer(3, on_expire=on_expire)
    timer.tick()
    timer.tick()
    await asyncio.sleep(0)
    assert on_expire.calls == 0
    assert timer.remaining == 1


async def test_stop_makes_timer_inert():
    on_expire = _Expiry()
    timer = CountdownTimer(2, on_expire=on_expire, interval=0.001)
    timer.start()
    assert timer.running
    timer.stop()
    await asyncio.sleep(0.02)
    assert not timer.running
    assert timer.ticks == 0
    timer.tick()
    assert timer.ticks == 0
    assert on_expire.calls == 0


async def test_running_timer_counts_down_and_fires():
    on_expire = _Expiry()
    timer = CountdownTimer(3, on_expire=on_expire, interval=0.001)
    timer.start()
    for _ in range(500):
        if timer.expired:
            break
        await asyncio.sleep(0.001)
    await timer.wait_expired()
    assert on_expire.calls == 1
    assert timer.ticks == 3
    assert not timer.running


async def test_start_with_zero_remaining_expires_immediately():
    on_expire = _Expiry()
    timer = CountdownTimer(0, on_expire=on_expire)
    timer.start()
    await timer.wait_expired()
    assert on_expire.calls == 1


async def test_expiry_failure_is_kept_on_timer():
    async def failing():
        raise RuntimeError("db down")

    timer = CountdownTimer(1, on_expire=failing)
    timer.tick()
    await timer.wait_expired()
    assert isinstance(timer.error, RuntimeError)
