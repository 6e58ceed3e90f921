"""
models/session_state.py

진행 중인 시험 한 건의 인메모리 스냅샷 (OMR 카드 모델).
Pydantic BaseModel 기반. UI 코드 없음.

변경 API(set_answer / toggle_flag / accumulate_time / move_to)는
ExamEngine만 호출한다.
"""

from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, Field

from config import LOW_TIME_THRESHOLD_SECONDS
from practice_exam_cbt.models.exam_model import AnswerSlot, ExamRecord, Question
from practice_exam_cbt.services.errors import InvariantViolation
from practice_exam_cbt.services.exam_service import count_unanswered


class SlotState(str, Enum):
    """문제 번호 그리드의 표시 상태."""
    current = "current"
    answered = "answered"
    flagged = "flagged"
    unanswered = "unanswered"


def elapsed_seconds(started_at: float, now: float) -> int:
    """경과 시간을 정수 초로 반올림 (0.5는 올림, 음수는 0)."""
    return max(0, int(now - started_at + 0.5))


class SessionState(BaseModel):
    """
    한 번의 시험 응시 상태.

    Attributes:
        exam:                시험 레코드 (로드 시점 스냅샷).
        slots:               question_order 순 답안 슬롯. 순서는 불변.
        questions:           {question_id: Question} 문제 내용.
        current_index:       현재 커서 (0-based).
        time_remaining:      남은 시간 (초). 로드 시 제한 시간 전체로 초기화.
        question_started_at: 현재 문제를 보기 시작한 시각 (엔진 시계 기준).
        is_finished:         종료 여부. True이면 더 이상 변경 불가.
        is_finalizing:       채점 진행 중 (또는 시간 만료 후 채점 실패). 사용자 변경 불가.
    """

    exam: ExamRecord
    slots: List[AnswerSlot] = Field(default_factory=list)
    questions: Dict[str, Question] = Field(default_factory=dict)
    current_index: int = Field(default=0, ge=0)
    time_remaining: int = Field(default=0, ge=0)
    question_started_at: float = 0.0
    is_finished: bool = False
    is_finalizing: bool = False

    # ── 읽기 ─────────────────────────────────────────────────────────────────

    @property
    def total(self) -> int:
        return len(self.slots)

    @property
    def current_slot(self) -> AnswerSlot:
        if not self.slots:
            raise InvariantViolation("문제가 없는 시험입니다.")
        return self.slots[self.current_index]

    @property
    def current_question(self) -> Question:
        return self.questions[self.current_slot.question_id]

    @property
    def unanswered_count(self) -> int:
        return count_unanswered(self.slots)

    @property
    def remaining_display(self) -> str:
        """남은 시간 mm:ss 표기."""
        minutes, seconds = divmod(self.time_remaining, 60)
        return f"{minutes:02d}:{seconds:02d}"

    @property
    def is_low_time(self) -> bool:
        return self.time_remaining < LOW_TIME_THRESHOLD_SECONDS

    def slot_states(self) -> List[SlotState]:
        """
        문제 번호 그리드 색상 상태.
        우선순위: 현재 > 답함 > 표시(flag) > 미답
        """
        states: List[SlotState] = []
        for i, slot in enumerate(self.slots):
            if i == self.current_index:
                states.append(SlotState.current)
            elif slot.user_answer:
                states.append(SlotState.answered)
            elif slot.is_flagged:
                states.append(SlotState.flagged)
            else:
                states.append(SlotState.unanswered)
        return states

    # ── 변경 (ExamEngine 전용) ───────────────────────────────────────────────

    def _ensure_not_finished(self) -> None:
        if self.is_finished:
            raise InvariantViolation(f"종료된 시험은 변경할 수 없습니다: {self.exam.id}")

    def ensure_live(self) -> None:
        """사용자 변경 가능 여부 확인. 종료 또는 채점 중이면 InvariantViolation."""
        self._ensure_not_finished()
        if self.is_finalizing:
            raise InvariantViolation(f"채점 중인 시험은 변경할 수 없습니다: {self.exam.id}")

    def set_answer(self, option: str) -> AnswerSlot:
        self.ensure_live()
        slot = self.current_slot
        slot.user_answer = option
        return slot

    def toggle_flag(self) -> AnswerSlot:
        self.ensure_live()
        slot = self.current_slot
        slot.is_flagged = not slot.is_flagged
        return slot

    def accumulate_time(self, now: float) -> int:
        """현재 슬롯에 경과 시간을 누적하고 시작 시각을 now로 재설정. 누적된 초를 반환."""
        self._ensure_not_finished()
        spent = elapsed_seconds(self.question_started_at, now)
        if self.slots:
            self.current_slot.time_spent_seconds += spent
        self.question_started_at = now
        return spent

    def move_to(self, index: int) -> None:
        self.ensure_live()
        if not 0 <= index < self.total:
            raise InvariantViolation(f"커서 범위 초과: {index} (문제 수 {self.total})")
        self.current_index = index
