"""
services/supabase_gateway.py

Supabase(PostgREST) 기반 Persistence Gateway.
테이블: exams, exam_answers, questions

supabase-py 클라이언트는 동기 API이므로 모든 호출을 asyncio.to_thread로 감싼다.
클라이언트 예외는 PersistenceError로 변환해 올린다.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping

from supabase import Client, create_client

from config import SUPABASE_KEY, SUPABASE_URL
from practice_exam_cbt.models.exam_model import AnswerSlot, ExamRecord, Question
from practice_exam_cbt.services.errors import NotFoundError, PersistenceError
from practice_exam_cbt.services.gateway import (
    EXAM_UPDATABLE_FIELDS,
    SLOT_UPDATABLE_FIELDS,
    PersistenceGateway,
    check_fields,
)

logger = logging.getLogger(__name__)

_QUESTION_COLUMNS = (
    "id, statement, option_a, option_b, option_c, option_d, option_e, "
    "correct_answer, subject_id, explanation"
)


def make_client(url: str = SUPABASE_URL, key: str = SUPABASE_KEY) -> Client:
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(url, key)


def _to_row(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Enum / datetime 값을 JSON 직렬화 가능한 값으로 변환."""
    row: Dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, datetime):
            value = value.isoformat()
        row[key] = value
    return row


class SupabaseGateway(PersistenceGateway):

    def __init__(self, client: Client) -> None:
        self._client = client

    async def _run(self, operation: str, fn: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(fn)
        except Exception as e:
            logger.error(f"Supabase {operation} 실패: {e}")
            raise PersistenceError(operation, e) from e

    # ── 조회 ─────────────────────────────────────────────────────────────────

    async def get_exam(self, exam_id: str) -> ExamRecord:
        r = await self._run(
            "get_exam",
            lambda: self._client.table("exams").select("*").eq("id", exam_id).limit(1).execute(),
        )
        rows = r.data or []
        if not rows:
            raise NotFoundError(f"시험을 찾을 수 없습니다: {exam_id}")
        return ExamRecord.model_validate(rows[0])

    async def list_answer_slots(self, exam_id: str) -> List[AnswerSlot]:
        r = await self._run(
            "list_answer_slots",
            lambda: (
                self._client.table("exam_answers")
                .select("*")
                .eq("exam_id", exam_id)
                .order("question_order")
                .execute()
            ),
        )
        return [AnswerSlot.model_validate(row) for row in r.data or []]

    async def get_questions_by_ids(self, ids: Iterable[str]) -> Dict[str, Question]:
        unique = sorted(set(ids))
        if not unique:
            return {}
        r = await self._run(
            "get_questions_by_ids",
            lambda: self._client.table("questions").select(_QUESTION_COLUMNS).in_("id", unique).execute(),
        )
        questions = [Question.model_validate(row) for row in r.data or []]
        return {q.id: q for q in questions}

    async def list_question_ids(self, subject_ids: Iterable[str], limit: int) -> List[str]:
        subjects = list(subject_ids)
        r = await self._run(
            "list_question_ids",
            lambda: (
                self._client.table("questions")
                .select("id")
                .in_("subject_id", subjects)
                .limit(limit)
                .execute()
            ),
        )
        return [row["id"] for row in r.data or []]

    # ── 갱신 ─────────────────────────────────────────────────────────────────

    async def update_answer_slot(self, slot_id: str, fields: Mapping[str, Any]) -> None:
        check_fields(fields, SLOT_UPDATABLE_FIELDS, "answer slot")
        row = _to_row(fields)
        await self._run(
            "update_answer_slot",
            lambda: self._client.table("exam_answers").update(row).eq("id", slot_id).execute(),
        )

    async def update_exam(self, exam_id: str, fields: Mapping[str, Any]) -> None:
        check_fields(fields, EXAM_UPDATABLE_FIELDS, "exam")
        row = _to_row(fields)
        await self._run(
            "update_exam",
            lambda: self._client.table("exams").update(row).eq("id", exam_id).execute(),
        )

    async def insert_exam(self, record: ExamRecord) -> ExamRecord:
        row = record.model_dump(mode="json", exclude_none=True)
        r = await self._run(
            "insert_exam",
            lambda: self._client.table("exams").insert(row).execute(),
        )
        rows = r.data or []
        return ExamRecord.model_validate(rows[0]) if rows else record

    async def insert_answer_slots(self, slots: List[AnswerSlot]) -> None:
        rows = [s.model_dump(mode="json") for s in slots]
        # 한 번의 insert 요청 = 하나의 트랜잭션 (슬롯은 전부 생성되거나 전혀 생성되지 않음)
        logger.info(f"exam_answers insert: {len(rows)}행")
        await self._run(
            "insert_answer_slots",
            lambda: self._client.table("exam_answers").insert(rows).execute(),
        )
