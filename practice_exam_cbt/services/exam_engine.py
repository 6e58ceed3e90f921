"""
services/exam_engine.py

시험 세션 엔진.
Public API:
  - ExamEngine.load(gateway, exam_id) -> ExamEngine   : 진행 중인 시험을 라이브 세션으로 로드
  - start() / close()                                  : 타이머 시작 / 화면 해제 (종료 아님)
  - select_answer(option) / toggle_flag()              : 현재 문제 변경 + 비동기 저장
  - go_to(index) / next() / previous()                 : 시간 누적 후 커서 이동
  - finalize(reason) -> ExamOutcome                    : 채점 및 종료 (명시적 / 시간 만료 공용)

설계 원칙:
- 메모리 변경이 먼저, 저장은 PersistQueue로 별도 전송
- 문제별 체류 시간은 메모리에만 누적, 종료 시 일괄 저장
- finalize는 상태 확인 후 설정(check-and-set) — 동시 호출은 같은 결과로 수렴
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional

from config import DEFAULT_TIME_LIMIT_MINUTES
from practice_exam_cbt.models.exam_model import (
    OPTION_KEYS,
    ExamOutcome,
    ExamRecord,
    ExamStatus,
    FinishReason,
)
from practice_exam_cbt.models.session_state import SessionState
from practice_exam_cbt.services.errors import (
    ExamEngineError,
    ExamFinishedError,
    InvariantViolation,
    NotFoundError,
    PersistenceError,
)
from practice_exam_cbt.services.exam_service import calculate_score, grade_slots, total_time_spent
from practice_exam_cbt.services.gateway import PersistenceGateway
from practice_exam_cbt.services.persist_queue import PersistQueue
from practice_exam_cbt.services.timer import CountdownTimer

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
WallClock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _call(operation: str, coro: Awaitable[Any]) -> Any:
    """저장소 호출. 엔진 예외가 아닌 실패는 PersistenceError로 감싼다."""
    try:
        return await coro
    except ExamEngineError:
        raise
    except Exception as e:
        raise PersistenceError(operation, e) from e


def _outcome_from_record(record: ExamRecord, reason: FinishReason) -> ExamOutcome:
    return ExamOutcome(
        exam_id=record.id,
        score=record.score or 0.0,
        total_correct=record.total_correct or 0,
        total_questions=record.total_questions,
        time_spent_seconds=record.time_spent_seconds or 0,
        reason=reason,
        finished_at=record.finished_at or _utcnow(),
    )


class ExamEngine:
    """진행 중인 시험 한 건. 호스트(화면/라우트)가 생성하고 close()로 폐기한다."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        state: SessionState,
        clock: Clock = time.monotonic,
        wall_clock: WallClock = _utcnow,
    ) -> None:
        self.gateway = gateway
        self.state = state
        self._clock = clock
        self._wall_clock = wall_clock
        self._queue = PersistQueue(gateway)
        self._finalizing: Optional[asyncio.Task] = None
        self._outcome: Optional[ExamOutcome] = None
        self.state.question_started_at = clock()
        self.timer = CountdownTimer(
            state.time_remaining,
            on_expire=self._on_timer_expired,
            on_tick=self._on_tick,
        )

    # ══════════════════════════════════════════════════════════════════════
    # 로드 / 수명
    # ══════════════════════════════════════════════════════════════════════

    @classmethod
    async def load(
        cls,
        gateway: PersistenceGateway,
        exam_id: str,
        clock: Clock = time.monotonic,
        wall_clock: WallClock = _utcnow,
    ) -> "ExamEngine":
        """
        시험 + 답안 슬롯 + 문제 내용을 불러와 라이브 세션을 만든다.

        Raises:
            NotFoundError:      시험이 없음.
            ExamFinishedError:  이미 종료된 시험 → 호출자는 결과 화면으로 이동.
            InvariantViolation: 슬롯 수와 시험 문제 수 / 문제 조회 결과 불일치.
        """
        exam = await _call("get_exam", gateway.get_exam(exam_id))
        if exam.status == ExamStatus.finished:
            raise ExamFinishedError(exam_id)

        slots = await _call("list_answer_slots", gateway.list_answer_slots(exam_id))
        if exam.total_questions and len(slots) != exam.total_questions:
            raise InvariantViolation(
                f"슬롯 수 불일치: 시험 {exam.total_questions}문제, 슬롯 {len(slots)}개"
            )

        question_ids = {s.question_id for s in slots}
        questions = await _call("get_questions_by_ids", gateway.get_questions_by_ids(question_ids))
        missing = question_ids - set(questions)
        if missing:
            raise InvariantViolation(f"문제 조회 결과 누락: {sorted(missing)}")

        # 재접속 시에도 남은 시간은 제한 시간 전체로 초기화 (경과 시간 복원 없음)
        limit = exam.time_limit_minutes or DEFAULT_TIME_LIMIT_MINUTES
        state = SessionState(
            exam=exam,
            slots=slots,
            questions=questions,
            time_remaining=limit * 60,
        )
        logger.info(f"시험 로드: {exam_id} ({len(slots)}문제, {limit}분)")
        return cls(gateway, state, clock=clock, wall_clock=wall_clock)

    def start(self) -> None:
        """카운트다운 시작. 실행 중인 이벤트 루프 안에서 호출."""
        if not self.state.is_finished:
            self.timer.start()

    def close(self) -> None:
        """화면 해제: 타이머만 멈춘다. 시험은 in_progress로 남는다."""
        self.timer.stop()

    @property
    def is_finished(self) -> bool:
        return self.state.is_finished

    @property
    def outcome(self) -> Optional[ExamOutcome]:
        return self._outcome

    def pop_notices(self) -> List[str]:
        """저장 실패 알림 메시지를 꺼낸다."""
        return [str(e) for e in self._queue.pop_errors()]

    async def flush_writes(self) -> None:
        await self._queue.drain()

    # ══════════════════════════════════════════════════════════════════════
    # 답안 / 네비게이션
    # ══════════════════════════════════════════════════════════════════════

    def select_answer(self, option: str) -> None:
        """현재 문제에 답 선택 (마지막 선택이 유효)."""
        if option not in OPTION_KEYS:
            raise ValueError(f"보기 키는 {OPTION_KEYS} 중 하나여야 합니다: {option!r}")
        slot = self.state.set_answer(option)
        self._queue.submit(slot.id, "user_answer", option)

    def toggle_flag(self) -> bool:
        """현재 문제 표시(flag) 반전. 채점에는 영향 없음."""
        slot = self.state.toggle_flag()
        self._queue.submit(slot.id, "is_flagged", slot.is_flagged)
        return slot.is_flagged

    def go_to(self, index: int) -> None:
        """떠나는 문제에 체류 시간을 누적한 뒤 커서를 index로 이동. 저장은 종료 시."""
        if not 0 <= index < self.state.total:
            raise InvariantViolation(f"커서 범위 초과: {index} (문제 수 {self.state.total})")
        self.state.ensure_live()
        self.state.accumulate_time(self._clock())
        self.state.move_to(index)

    def next(self) -> int:
        self.go_to(min(self.state.total - 1, self.state.current_index + 1))
        return self.state.current_index

    def previous(self) -> int:
        self.go_to(max(0, self.state.current_index - 1))
        return self.state.current_index

    # ══════════════════════════════════════════════════════════════════════
    # 채점 / 종료
    # ══════════════════════════════════════════════════════════════════════

    async def finalize(self, reason: FinishReason = FinishReason.EXPLICIT) -> ExamOutcome:
        """
        시험을 채점하고 종료한다. 명시적 제출과 시간 만료가 같은 경로를 쓴다.

        - 이미 종료됨: 저장된 결과를 그대로 반환 (재채점/재저장 없음)
        - 진행 중인 finalize가 있음: 같은 결과를 기다린다
        - 실패: PersistenceError/NotFoundError를 그대로 올리고, 재시도 가능 상태 유지
        - 시작 즉시 세션을 잠근다. 시간 만료 후 실패했다면 잠금을 유지 (재시도만 허용)
        """
        if self._outcome is not None:
            return self._outcome
        task = self._finalizing
        if task is None:
            self.state.is_finalizing = True
            task = asyncio.get_running_loop().create_task(self._finalize(reason))
            task.add_done_callback(self._finalize_done)
            self._finalizing = task
        return await asyncio.shield(task)

    def _finalize_done(self, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is not None:
            # 실패한 finalize는 가드를 풀어 재시도를 허용
            self._finalizing = None
            if not self.timer.expired:
                self.state.is_finalizing = False

    async def _finalize(self, reason: FinishReason) -> ExamOutcome:
        state = self.state
        exam_id = state.exam.id
        logger.info(f"시험 종료 시작: {exam_id} (사유: {reason.value})")

        # 다른 인스턴스가 이미 종료했다면 재채점하지 않는다
        current = await _call("get_exam", self.gateway.get_exam(exam_id))
        if current.status == ExamStatus.finished:
            logger.info(f"이미 종료된 시험: {exam_id}")
            return self._mark_finished(_outcome_from_record(current, reason))

        # 1. 현재 문제 체류 시간 반영
        state.accumulate_time(self._clock())

        # 2. 대기 중인 저장을 마친 뒤 슬롯 전체를 일괄 저장
        #    (실패한 답안 저장이 있어도 채점 대상과 저장된 답안이 일치하도록)
        await self._queue.drain()
        for slot in state.slots:
            await _call(
                "update_answer_slot",
                self.gateway.update_answer_slot(slot.id, {
                    "user_answer": slot.user_answer,
                    "is_flagged": slot.is_flagged,
                    "time_spent_seconds": slot.time_spent_seconds,
                }),
            )

        # 3. 정답 일괄 조회
        question_ids = {s.question_id for s in state.slots}
        questions = await _call("get_questions_by_ids", self.gateway.get_questions_by_ids(question_ids))
        missing = question_ids - set(questions)
        if missing:
            raise NotFoundError(f"정답을 조회할 수 없는 문제: {sorted(missing)}")
        correct_answers = {qid: q.correct_answer for qid, q in questions.items()}

        # 4. 문제별 채점 및 저장
        graded = grade_slots(state.slots, correct_answers)
        for slot, is_correct in zip(state.slots, graded):
            slot.is_correct = is_correct
            await _call(
                "update_answer_slot",
                self.gateway.update_answer_slot(slot.id, {"is_correct": is_correct}),
            )

        # 5. 집계
        total_correct = sum(graded)
        score = calculate_score(total_correct, state.total)
        spent = total_time_spent(state.slots)

        # 6. 시험 레코드 종료 커밋
        finished_at = self._wall_clock()
        await _call(
            "update_exam",
            self.gateway.update_exam(exam_id, {
                "status": ExamStatus.finished,
                "score": score,
                "total_correct": total_correct,
                "time_spent_seconds": spent,
                "finished_at": finished_at,
            }),
        )

        outcome = ExamOutcome(
            exam_id=exam_id,
            score=score,
            total_correct=total_correct,
            total_questions=state.total,
            time_spent_seconds=spent,
            reason=reason,
            finished_at=finished_at,
        )
        logger.info(f"시험 종료 완료: {exam_id} — {total_correct}/{state.total}, {score:.1f}점")
        return self._mark_finished(outcome)

    def _mark_finished(self, outcome: ExamOutcome) -> ExamOutcome:
        # 7. 이후 상태는 읽기 전용
        self.timer.stop()
        self.state.is_finished = True
        self.state.exam = self.state.exam.model_copy(update={
            "status": ExamStatus.finished,
            "score": outcome.score,
            "total_correct": outcome.total_correct,
            "time_spent_seconds": outcome.time_spent_seconds,
            "finished_at": outcome.finished_at,
        })
        self._outcome = outcome
        return outcome

    # ── 타이머 콜백 ──────────────────────────────────────────────────────────

    def _on_tick(self, remaining: int) -> None:
        self.state.time_remaining = remaining

    async def _on_timer_expired(self) -> None:
        await self.finalize(FinishReason.TIMER_EXPIRED)
