"""
services/exam_builder.py

새 모의고사 생성: 선택한 과목의 문제 후보를 섞어 필요한 수만큼 뽑고,
시험 레코드와 답안 슬롯(출제 순서 1..N)을 한 번에 만든다.
"""

import logging
import random
import uuid
from typing import Iterable, Optional

from config import DEFAULT_TIME_LIMIT_MINUTES, MAX_QUESTIONS_PER_EXAM, QUESTION_POOL_LIMIT
from practice_exam_cbt.models.exam_model import AnswerSlot, ExamMode, ExamRecord
from practice_exam_cbt.services.errors import NotFoundError
from practice_exam_cbt.services.gateway import PersistenceGateway

logger = logging.getLogger(__name__)


async def create_exam(
    gateway: PersistenceGateway,
    user_id: str,
    subject_ids: Iterable[str],
    question_count: int = 20,
    time_limit_minutes: int = DEFAULT_TIME_LIMIT_MINUTES,
    mode: ExamMode = ExamMode.random,
    rng: Optional[random.Random] = None,
) -> ExamRecord:
    """
    시험을 생성하고 ExamRecord를 반환한다.

    Raises:
        ValueError:    과목 미선택, 문제 수/제한 시간 범위 오류.
        NotFoundError: 선택한 과목에 문제가 없음.
    """
    subjects = list(dict.fromkeys(subject_ids))
    if not subjects:
        raise ValueError("과목을 하나 이상 선택해야 합니다.")
    if not 1 <= question_count <= MAX_QUESTIONS_PER_EXAM:
        raise ValueError(f"문제 수는 1~{MAX_QUESTIONS_PER_EXAM} 사이여야 합니다: {question_count}")
    if time_limit_minutes < 1:
        raise ValueError(f"제한 시간은 1분 이상이어야 합니다: {time_limit_minutes}")

    pool = await gateway.list_question_ids(subjects, QUESTION_POOL_LIMIT)
    if not pool:
        raise NotFoundError("선택한 과목에 등록된 문제가 없습니다.")

    rng = rng or random.Random()
    picked = list(pool)
    rng.shuffle(picked)
    picked = picked[:question_count]

    record = ExamRecord(
        id=str(uuid.uuid4()),
        user_id=user_id,
        time_limit_minutes=time_limit_minutes,
        total_questions=len(picked),
        subject_ids=subjects,
        mode=mode,
    )
    record = await gateway.insert_exam(record)

    slots = [
        AnswerSlot(
            id=str(uuid.uuid4()),
            exam_id=record.id,
            question_id=qid,
            question_order=i,
        )
        for i, qid in enumerate(picked, start=1)
    ]
    await gateway.insert_answer_slots(slots)

    logger.info(f"시험 생성: {record.id} ({len(slots)}문제, {time_limit_minutes}분, 과목 {len(subjects)}개)")
    return record
