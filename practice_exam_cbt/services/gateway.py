"""
services/gateway.py

Persistence Gateway 계약과 인메모리 구현.

엔진이 요구하는 저장소 연산:
  - get_exam(exam_id)                  -> ExamRecord (없으면 NotFoundError)
  - list_answer_slots(exam_id)         -> question_order 순 AnswerSlot 리스트
  - get_questions_by_ids(ids)          -> {question_id: Question}
  - update_answer_slot(slot_id, fields) : 부분 갱신
  - update_exam(exam_id, fields)        : 부분 갱신
시험 생성용:
  - list_question_ids(subject_ids, limit)
  - insert_exam(record), insert_answer_slots(slots)

모든 연산은 코루틴 — 호출 지점마다 임의의 지연을 허용해야 한다.
"""

import abc
import copy
import logging
from typing import Any, Dict, Iterable, List, Mapping

from practice_exam_cbt.models.exam_model import AnswerSlot, ExamRecord, Question
from practice_exam_cbt.services.errors import NotFoundError

logger = logging.getLogger(__name__)

SLOT_UPDATABLE_FIELDS = frozenset({"user_answer", "is_flagged", "time_spent_seconds", "is_correct"})
EXAM_UPDATABLE_FIELDS = frozenset({"status", "score", "total_correct", "time_spent_seconds", "finished_at"})


def check_fields(fields: Mapping[str, Any], allowed: frozenset, target: str) -> None:
    """부분 갱신 필드가 허용 목록 안에 있는지 검사."""
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"{target}에 갱신할 수 없는 필드: {sorted(unknown)}")
    if not fields:
        raise ValueError(f"{target} 갱신 필드가 비어 있습니다.")


class PersistenceGateway(abc.ABC):
    """시험/답안/문제 레코드 저장소."""

    @abc.abstractmethod
    async def get_exam(self, exam_id: str) -> ExamRecord: ...

    @abc.abstractmethod
    async def list_answer_slots(self, exam_id: str) -> List[AnswerSlot]: ...

    @abc.abstractmethod
    async def get_questions_by_ids(self, ids: Iterable[str]) -> Dict[str, Question]: ...

    @abc.abstractmethod
    async def update_answer_slot(self, slot_id: str, fields: Mapping[str, Any]) -> None: ...

    @abc.abstractmethod
    async def update_exam(self, exam_id: str, fields: Mapping[str, Any]) -> None: ...

    @abc.abstractmethod
    async def list_question_ids(self, subject_ids: Iterable[str], limit: int) -> List[str]: ...

    @abc.abstractmethod
    async def insert_exam(self, record: ExamRecord) -> ExamRecord: ...

    @abc.abstractmethod
    async def insert_answer_slots(self, slots: List[AnswerSlot]) -> None: ...


class InMemoryGateway(PersistenceGateway):
    """
    테스트 및 데모용 인메모리 저장소.
    반환값은 항상 복사본 — 호출자가 내부 상태를 직접 바꿀 수 없다.
    """

    def __init__(self) -> None:
        self.exams: Dict[str, ExamRecord] = {}
        self.slots: Dict[str, AnswerSlot] = {}
        self.questions: Dict[str, Question] = {}

    # ── 시드 헬퍼 ────────────────────────────────────────────────────────────

    def add_questions(self, questions: Iterable[Question]) -> None:
        for q in questions:
            self.questions[q.id] = q

    # ── 조회 ─────────────────────────────────────────────────────────────────

    async def get_exam(self, exam_id: str) -> ExamRecord:
        exam = self.exams.get(exam_id)
        if exam is None:
            raise NotFoundError(f"시험을 찾을 수 없습니다: {exam_id}")
        return exam.model_copy(deep=True)

    async def list_answer_slots(self, exam_id: str) -> List[AnswerSlot]:
        rows = [s for s in self.slots.values() if s.exam_id == exam_id]
        rows.sort(key=lambda s: s.question_order)
        return [s.model_copy() for s in rows]

    async def get_questions_by_ids(self, ids: Iterable[str]) -> Dict[str, Question]:
        return {qid: self.questions[qid].model_copy() for qid in set(ids) if qid in self.questions}

    async def list_question_ids(self, subject_ids: Iterable[str], limit: int) -> List[str]:
        wanted = set(subject_ids)
        ids = [q.id for q in self.questions.values() if q.subject_id in wanted]
        return ids[:limit]

    # ── 갱신 ─────────────────────────────────────────────────────────────────

    async def update_answer_slot(self, slot_id: str, fields: Mapping[str, Any]) -> None:
        check_fields(fields, SLOT_UPDATABLE_FIELDS, "answer slot")
        slot = self.slots.get(slot_id)
        if slot is None:
            raise NotFoundError(f"답안 슬롯을 찾을 수 없습니다: {slot_id}")
        self.slots[slot_id] = slot.model_copy(update=copy.deepcopy(dict(fields)))

    async def update_exam(self, exam_id: str, fields: Mapping[str, Any]) -> None:
        check_fields(fields, EXAM_UPDATABLE_FIELDS, "exam")
        exam = self.exams.get(exam_id)
        if exam is None:
            raise NotFoundError(f"시험을 찾을 수 없습니다: {exam_id}")
        self.exams[exam_id] = exam.model_copy(update=copy.deepcopy(dict(fields)))

    async def insert_exam(self, record: ExamRecord) -> ExamRecord:
        self.exams[record.id] = record.model_copy(deep=True)
        return record

    async def insert_answer_slots(self, slots: List[AnswerSlot]) -> None:
        for s in slots:
            if s.id in self.slots:
                raise ValueError(f"이미 존재하는 답안 슬롯: {s.id}")
        for s in slots:
            self.slots[s.id] = s.model_copy()
        logger.info(f"답안 슬롯 {len(slots)}개 생성")
