"""
services/persist_queue.py

답안/표시(flag) 변경을 저장소로 내보내는 비동기 쓰기 큐.

- 변경은 메모리에 먼저 반영되고, 저장 요청은 별도 태스크로 나간다 (fire-and-forget).
- (slot_id, field) 키마다 동시에 최대 1건만 전송 중.
- 전송 중에 들어온 값은 대기 값을 덮어쓰고, 전송이 끝나면 최신 값만 전송 (last-intent-wins).
- 실패는 로그 + 알림 목록에 기록. 재시도나 메모리 롤백은 하지 않는다.
"""

import asyncio
import logging
from typing import Any, Dict, List, Tuple

from practice_exam_cbt.services.errors import PersistenceError
from practice_exam_cbt.services.gateway import PersistenceGateway

logger = logging.getLogger(__name__)

_Key = Tuple[str, str]


class PersistQueue:

    def __init__(self, gateway: PersistenceGateway) -> None:
        self._gateway = gateway
        self._pending: Dict[_Key, Any] = {}
        self._workers: Dict[_Key, asyncio.Task] = {}
        self._errors: List[PersistenceError] = []

    @property
    def in_flight(self) -> int:
        return len(self._workers)

    def submit(self, slot_id: str, field: str, value: Any) -> None:
        """슬롯 필드의 최신 의도 값을 등록. 실행 중인 이벤트 루프가 필요."""
        key = (slot_id, field)
        self._pending[key] = value
        if key not in self._workers:
            self._workers[key] = asyncio.get_running_loop().create_task(self._pump(key))

    async def _pump(self, key: _Key) -> None:
        slot_id, field = key
        try:
            while key in self._pending:
                value = self._pending.pop(key)
                try:
                    await self._gateway.update_answer_slot(slot_id, {field: value})
                except Exception as e:
                    err = e if isinstance(e, PersistenceError) else PersistenceError(f"{field} 저장", e)
                    logger.warning(f"슬롯 {slot_id} {field} 저장 실패: {err}")
                    self._errors.append(err)
        finally:
            del self._workers[key]

    async def drain(self) -> None:
        """대기/전송 중인 모든 쓰기가 끝날 때까지 대기."""
        while self._workers:
            await asyncio.gather(*list(self._workers.values()))

    def pop_errors(self) -> List[PersistenceError]:
        """누적된 저장 실패를 꺼내고 비운다 (화면 알림용)."""
        errors, self._errors = self._errors, []
        return errors
