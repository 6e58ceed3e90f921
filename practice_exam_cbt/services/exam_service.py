"""
services/exam_service.py

시험 채점 및 결과 분석 비즈니스 로직.
순수 Python 함수로 구성 — 저장소 호출, 전역 상태 변경 없음.
"""

from typing import Dict, List, Optional, Sequence

from config import PASS_SCORE
from practice_exam_cbt.models.exam_model import AnswerSlot


def grade_slots(
    slots: Sequence[AnswerSlot],
    correct_answers: Dict[str, Optional[str]],
) -> List[bool]:
    """
    슬롯별 정답 여부를 출제 순서대로 반환한다.

    정답 판정 기준: slot.user_answer == correct_answers[slot.question_id]
    미응답(None)은 항상 오답 — 예외를 던지지 않는다.
    표시(flag)는 채점에 영향이 없다.
    """
    graded: List[bool] = []
    for slot in slots:
        expected = correct_answers.get(slot.question_id)
        graded.append(slot.user_answer is not None and slot.user_answer == expected)
    return graded


def calculate_score(total_correct: int, total: int) -> float:
    """
    100점 만점 환산 점수 (반올림 없음).
    total이 0이면 0.0 반환.
    """
    if total <= 0:
        return 0.0
    return total_correct / total * 100


def total_time_spent(slots: Sequence[AnswerSlot]) -> int:
    return sum(s.time_spent_seconds or 0 for s in slots)


def count_unanswered(slots: Sequence[AnswerSlot]) -> int:
    """종료 확인 창에 표시할 미응답 문제 수."""
    return sum(1 for s in slots if not s.user_answer)


def is_passed(score: float, pass_score: float = PASS_SCORE) -> bool:
    """
    합격 여부를 반환한다.

    Args:
        score:      calculate_score()가 반환한 점수 (0.0 ~ 100.0).
        pass_score: 합격 기준 점수 (기본값 60.0점).
    """
    return score >= pass_score


def round_score(score: float) -> int:
    """결과 화면 표시용 정수 점수 (0.5는 올림)."""
    return int(score + 0.5)


def performance_tier(score: float) -> str:
    """결과 화면 메시지 등급: 70 이상 excellent, 50 이상 good, 그 외 keep_practicing."""
    rounded = round_score(score)
    if rounded >= 70:
        return "excellent"
    if rounded >= 50:
        return "good"
    return "keep_practicing"
