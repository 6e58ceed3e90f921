"""
services/errors.py

시험 엔진 예외 계층.
라우트 계층이 HTTP 상태 코드로 변환한다.
"""

from typing import Optional


class ExamEngineError(Exception):
    """엔진 예외의 공통 부모."""


class NotFoundError(ExamEngineError):
    """시험 또는 문제를 찾을 수 없음. 호출자는 세션을 만들지 말고 이동해야 한다."""


class ExamFinishedError(NotFoundError):
    """이미 종료된 시험을 라이브 세션으로 열려고 함 → 결과 화면으로 이동."""

    def __init__(self, exam_id: str):
        super().__init__(f"이미 종료된 시험입니다: {exam_id}")
        self.exam_id = exam_id


class PersistenceError(ExamEngineError):
    """저장소 읽기/쓰기 실패. 자동 재시도하지 않는다."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        detail = f"{operation} 실패"
        if cause is not None:
            detail += f": {type(cause).__name__}: {cause}"
        super().__init__(detail)
        self.operation = operation
        self.cause = cause


class InvariantViolation(ExamEngineError):
    """엔진 불변식 위반 (중복 종료, 커서 범위 초과, 슬롯 수 불일치 등). 현재 엔진 인스턴스에 치명적."""
