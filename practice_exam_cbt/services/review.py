"""
services/review.py

종료된 시험의 결과 화면 데이터 (읽기 전용).
"""

from typing import Dict, List, Optional

from pydantic import BaseModel

from practice_exam_cbt.models.exam_model import ExamStatus
from practice_exam_cbt.services.errors import InvariantViolation, NotFoundError
from practice_exam_cbt.services.exam_service import is_passed, performance_tier, round_score
from practice_exam_cbt.services.gateway import PersistenceGateway


class ReviewItem(BaseModel):
    question_order: int
    question_id: str
    statement: str
    options: Dict[str, str]
    user_answer: Optional[str]
    correct_answer: Optional[str]
    is_correct: bool
    is_flagged: bool
    time_spent_seconds: int
    explanation: Optional[str] = None


class ExamReview(BaseModel):
    exam_id: str
    score: int
    total_correct: int
    total_questions: int
    minutes_spent: int
    tier: str
    passed: bool
    items: List[ReviewItem]


async def build_review(
    gateway: PersistenceGateway,
    exam_id: str,
    only_errors: bool = False,
) -> ExamReview:
    """
    종료된 시험의 요약과 문제별 결과.
    only_errors=True 이면 틀린(미응답 포함) 문제만 담는다.
    """
    exam = await gateway.get_exam(exam_id)
    if exam.status != ExamStatus.finished:
        raise InvariantViolation(f"아직 종료되지 않은 시험입니다: {exam_id}")

    slots = await gateway.list_answer_slots(exam_id)
    questions = await gateway.get_questions_by_ids({s.question_id for s in slots})

    items: List[ReviewItem] = []
    for slot in slots:
        q = questions.get(slot.question_id)
        if q is None:
            raise NotFoundError(f"문제를 찾을 수 없습니다: {slot.question_id}")
        if only_errors and slot.is_correct:
            continue
        items.append(ReviewItem(
            question_order=slot.question_order,
            question_id=q.id,
            statement=q.statement,
            options=q.options(),
            user_answer=slot.user_answer,
            correct_answer=q.correct_answer,
            is_correct=bool(slot.is_correct),
            is_flagged=slot.is_flagged,
            time_spent_seconds=slot.time_spent_seconds,
            explanation=q.explanation,
        ))

    score = exam.score or 0.0
    return ExamReview(
        exam_id=exam.id,
        score=round_score(score),
        total_correct=exam.total_correct or 0,
        total_questions=exam.total_questions or len(slots),
        minutes_spent=(exam.time_spent_seconds or 0) // 60,
        tier=performance_tier(score),
        passed=is_passed(score),
        items=items,
    )
