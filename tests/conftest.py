import pytest
from fastapi.testclient import TestClient

from practice_exam_cbt.models.exam_model import AnswerSlot, ExamRecord, Question
from practice_exam_cbt.services.errors import PersistenceError
from practice_exam_cbt.services.gateway import InMemoryGateway

SUBJECT = "math"
CORRECT = ["A", "B", "C", "D", "E"]


class FakeClock:
    """엔진 시계 대역. advance()로만 시간이 흐른다."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingGateway(InMemoryGateway):
    """
    호출을 기록하고, fail_ops에 든 연산은 PersistenceError로 실패시키는 저장소.
    """

    def __init__(self):
        super().__init__()
        self.calls = []
        self.fail_ops = set()

    def _record(self, op, *args):
        self.calls.append((op, *args))
        if op in self.fail_ops:
            raise PersistenceError(op, RuntimeError("connection reset"))

    def count(self, op):
        return sum(1 for c in self.calls if c[0] == op)

    async def get_exam(self, exam_id):
        self._record("get_exam", exam_id)
        return await super().get_exam(exam_id)

    async def get_questions_by_ids(self, ids):
        ids = set(ids)
        self._record("get_questions_by_ids", frozenset(ids))
        return await super().get_questions_by_ids(ids)

    async def update_answer_slot(self, slot_id, fields):
        self._record("update_answer_slot", slot_id, dict(fields))
        await super().update_answer_slot(slot_id, fields)

    async def update_exam(self, exam_id, fields):
        self._record("update_exam", exam_id, dict(fields))
        await super().update_exam(exam_id, fields)


def make_questions(correct=CORRECT, subject=SUBJECT):
    return [
        Question(
            id=f"q{i}",
            subject_id=subject,
            statement=f"문제 {i}",
            option_a="가", option_b="나", option_c="다", option_d="라", option_e="마",
            correct_answer=answer,
        )
        for i, answer in enumerate(correct, start=1)
    ]


def seed_exam(gateway, exam_id="exam-1", n=5, time_limit=60, user_id="user-1", status="in_progress", **extra):
    """시험 1건과 슬롯 n개를 저장소에 직접 넣는다 (q1..qn 순서)."""
    record = ExamRecord(
        id=exam_id,
        user_id=user_id,
        status=status,
        time_limit_minutes=time_limit,
        total_questions=n,
        subject_ids=[SUBJECT],
        **extra,
    )
    gateway.exams[exam_id] = record
    for i in range(1, n + 1):
        slot = AnswerSlot(
            id=f"{exam_id}-s{i}",
            exam_id=exam_id,
            question_id=f"q{i}",
            question_order=i,
        )
        gateway.slots[slot.id] = slot
    return record


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    gw = RecordingGateway()
    gw.add_questions(make_questions())
    return gw


@pytest.fixture
def test_client(gateway):
    """인메모리 저장소를 주입한 TestClient (lifespan 포함)."""
    from api.app import create_app

    app = create_app(gateway)
    with TestClient(app) as client:
        yield client
