"""
models/exam_model.py

모의고사 영속 레코드 모델 (시험, 답안 슬롯, 문제).
Pydantic v2 적용 — 저장소(Persistence Gateway)와 엔진 사이의 데이터 계약.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

OPTION_KEYS = ("A", "B", "C", "D", "E")


class ExamStatus(str, Enum):
    in_progress = "in_progress"
    finished = "finished"


class ExamMode(str, Enum):
    random = "random"
    thematic = "thematic"


class FinishReason(str, Enum):
    """시험 종료 사유. 두 경우 모두 같은 채점 경로를 탄다."""
    EXPLICIT = "explicit"
    TIMER_EXPIRED = "timer_expired"


class Question(BaseModel):
    """
    문제 은행의 문제 (엔진 입장에서는 읽기 전용).
    """
    id: str = Field(..., description="문제 식별자")
    statement: str = Field("", description="문제 본문")
    option_a: str = Field("", description="보기 A")
    option_b: str = Field("", description="보기 B")
    option_c: str = Field("", description="보기 C")
    option_d: str = Field("", description="보기 D")
    option_e: str = Field("", description="보기 E")
    correct_answer: Optional[str] = Field(
        None,
        description="정답 보기 키 (A~E). 내용 조회 시에는 비어 있을 수 있음"
    )
    subject_id: Optional[str] = Field(None, description="과목 식별자")
    explanation: Optional[str] = Field(None, description="해설")

    @field_validator("correct_answer")
    @classmethod
    def validate_correct_answer(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in OPTION_KEYS:
            raise ValueError(f"정답('{v}')은 {OPTION_KEYS} 중 하나여야 합니다.")
        return v

    def options(self) -> Dict[str, str]:
        """보기 키 → 보기 텍스트."""
        return {
            "A": self.option_a,
            "B": self.option_b,
            "C": self.option_c,
            "D": self.option_d,
            "E": self.option_e,
        }


class AnswerSlot(BaseModel):
    """
    시험 내 문제 한 개에 대한 답안 기록.
    시험 생성 시 한꺼번에 만들어지고 이후 추가/삭제되지 않는다.
    """
    id: str
    exam_id: str
    question_id: str
    question_order: int = Field(..., ge=1, description="출제 순서 (1-based)")
    user_answer: Optional[str] = Field(None, description="선택한 보기 키 (A~E), 미응답이면 None")
    is_flagged: bool = False
    is_correct: Optional[bool] = Field(None, description="채점 결과. 종료 시에만 설정")
    time_spent_seconds: int = Field(0, ge=0, description="이 문제에 머문 누적 시간 (초)")

    @field_validator("time_spent_seconds", "is_flagged", mode="before")
    @classmethod
    def null_as_default(cls, v, info):
        # DB 컬럼이 NULL이면 기본값으로
        if v is None:
            return 0 if info.field_name == "time_spent_seconds" else False
        return v

    @field_validator("user_answer")
    @classmethod
    def validate_user_answer(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if v not in OPTION_KEYS:
            raise ValueError(f"답안('{v}')은 {OPTION_KEYS} 중 하나여야 합니다.")
        return v


class ExamRecord(BaseModel):
    """
    한 번의 시험 응시 기록.
    score / total_correct / time_spent_seconds / finished_at 은 종료 시에만 설정된다.
    """
    id: str
    user_id: str
    status: ExamStatus = ExamStatus.in_progress
    time_limit_minutes: Optional[int] = Field(None, ge=1, description="제한 시간 (분)")
    total_questions: int = Field(0, ge=0)
    subject_ids: List[str] = Field(default_factory=list)
    mode: ExamMode = ExamMode.random
    score: Optional[float] = Field(None, ge=0, le=100)
    total_correct: Optional[int] = Field(None, ge=0)
    time_spent_seconds: Optional[int] = Field(None, ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_finished_fields(self) -> "ExamRecord":
        """종료된 시험은 점수 정보를 반드시 가진다."""
        if self.status == ExamStatus.finished and self.score is None:
            raise ValueError("종료된 시험에 점수가 없습니다.")
        return self


class ExamOutcome(BaseModel):
    """채점 결과 요약 (finalize 반환값)."""
    exam_id: str
    score: float
    total_correct: int
    total_questions: int
    time_spent_seconds: int
    reason: FinishReason
    finished_at: datetime
