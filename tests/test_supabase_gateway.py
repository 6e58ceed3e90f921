from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from practice_exam_cbt.models.exam_model import ExamStatus
from practice_exam_cbt.services.errors import NotFoundError, PersistenceError
from practice_exam_cbt.services.supabase_gateway import SupabaseGateway

pytestmark = pytest.mark.asyncio


class FakeQuery:
    """supabase-py 쿼리 빌더 대역. 체인 호출을 기록하고 execute()에서 data를 돌려준다."""

    def __init__(self, client, table):
        self.client = client
        self.ops = [("table", table)]

    def __getattr__(self, name):
        def op(*args, **kwargs):
            self.ops.append((name, *args))
            return self
        return op

    def execute(self):
        self.client.executed.append(self.ops)
        if self.client.error:
            raise self.client.error
        return SimpleNamespace(data=self.client.data)


class FakeClient:
    def __init__(self, data=None, error=None):
        self.data = data or []
        self.error = error
        self.executed = []

    def table(self, name):
        return FakeQuery(self, name)


async def test_get_exam_parses_row():
    client = FakeClient(data=[{
        "id": "e1", "user_id": "u1", "status": "in_progress",
        "time_limit_minutes": 60, "total_questions": 3, "extra": "ignored",
    }])
    exam = await SupabaseGateway(client).get_exam("e1")
    assert exam.id == "e1"
    assert exam.status == ExamStatus.in_progress
    assert ("eq", "id", "e1") in client.executed[0]


async def test_get_exam_missing():
    with pytest.raises(NotFoundError):
        await SupabaseGateway(FakeClient(data=[])).get_exam("e1")


async def test_list_slots_orders_by_question_order():
    client = FakeClient(data=[
        {"id": "s1", "exam_id": "e1", "question_id": "q1", "question_order": 1,
         "user_answer": None, "is_flagged": False, "is_correct": None, "time_spent_seconds": None},
    ])
    slots = await SupabaseGateway(client).list_answer_slots("e1")
    assert slots[0].time_spent_seconds == 0
    assert ("order", "question_order") in client.executed[0]


async def test_update_exam_serializes_enum_and_datetime():
    client = FakeClient()
    finished = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    await SupabaseGateway(client).update_exam("e1", {"status": ExamStatus.finished, "finished_at": finished})
    update = next(op for op in client.executed[0] if op[0] == "update")
    assert update[1] == {"status": "finished", "finished_at": finished.isoformat()}


async def test_update_rejects_unknown_fields():
    with pytest.raises(ValueError):
        await SupabaseGateway(FakeClient()).update_answer_slot("s1", {"question_id": "q9"})


async def test_client_errors_become_persistence_errors():
    gateway = SupabaseGateway(FakeClient(error=RuntimeError("timeout")))
    with pytest.raises(PersistenceError) as exc:
        await gateway.update_answer_slot("s1", {"user_answer": "A"})
    assert exc.value.operation == "update_answer_slot"


async def test_question_lookup_is_single_batched_query():
    client = FakeClient(data=[{"id": "q1", "correct_answer": "B"}, {"id": "q2", "correct_answer": "C"}])
    result = await SupabaseGateway(client).get_questions_by_ids(["q2", "q1", "q1"])
    assert set(result) == {"q1", "q2"}
    assert len(client.executed) == 1
    assert ("in_", "id", ["q1", "q2"]) in client.executed[0]
