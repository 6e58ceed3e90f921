"""
api/routes.py — FastAPI 엔드포인트 (시험 엔진 호스트)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

import api.session as session
from api.sample_questions import SAMPLE_SUBJECT_ID
from config import DEFAULT_TIME_LIMIT_MINUTES, MAX_QUESTIONS_PER_EXAM

from practice_exam_cbt.models.exam_model import ExamMode, FinishReason
from practice_exam_cbt.services.errors import (
    ExamFinishedError,
    InvariantViolation,
    NotFoundError,
    PersistenceError,
)
from practice_exam_cbt.services.exam_builder import create_exam
from practice_exam_cbt.services.exam_engine import ExamEngine
from practice_exam_cbt.services.gateway import PersistenceGateway
from practice_exam_cbt.services.review import build_review

logger = logging.getLogger(__name__)

router = APIRouter()

# ── Pydantic request bodies ──────────────────────────────────────────────────

class CreateExamBody(BaseModel):
    subject_ids: list[str] = []
    question_count: int = Field(default=20, ge=1, le=MAX_QUESTIONS_PER_EXAM)
    time_limit_minutes: int = Field(default=DEFAULT_TIME_LIMIT_MINUTES, ge=1)
    mode: ExamMode = ExamMode.random

class SelectAnswerBody(BaseModel):
    option: str

class NavigateBody(BaseModel):
    index: int = 0


# ── 헬퍼 ─────────────────────────────────────────────────────────────────────

def get_gateway(request: Request) -> PersistenceGateway:
    return request.app.state.gateway


def _sid(request: Request) -> str:
    return request.state.session_id


def _review_url(exam_id: str) -> str:
    return f"/api/exams/{exam_id}/review"


def _get_engine(request: Request, exam_id: str) -> ExamEngine:
    engine = session.get_engine(_sid(request), exam_id)
    if engine is None:
        raise HTTPException(status_code=404, detail="열린 시험 세션이 없습니다.")
    return engine


def _state_to_dict(engine: ExamEngine) -> dict:
    state = engine.state
    d = {
        "exam_id": state.exam.id,
        "finished": state.is_finished,
        "finalizing": state.is_finalizing,
        "total": state.total,
        "time_remaining": state.time_remaining,
        "remaining": state.remaining_display,
        "low_time": state.is_low_time,
        "slot_states": [s.value for s in state.slot_states()],
        "unanswered_count": state.unanswered_count,
        "answered_count": state.total - state.unanswered_count,
        "notices": engine.pop_notices(),
        "finalize_error": str(engine.timer.error) if engine.timer.error else None,
    }
    if state.total:
        slot = state.current_slot
        q = state.current_question
        d.update({
            "index": state.current_index,
            "position": state.current_index + 1,
            "question": {"id": q.id, "statement": q.statement, "options": q.options()},
            "user_answer": slot.user_answer,
            "is_flagged": slot.is_flagged,
        })
    if engine.outcome is not None:
        d["outcome"] = engine.outcome.model_dump(mode="json")
        d["redirect"] = _review_url(state.exam.id)
    return d


def _mutate(engine: ExamEngine, action) -> dict:
    try:
        action()
    except InvariantViolation as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _state_to_dict(engine)


# ── 엔드포인트 ───────────────────────────────────────────────────────────────

@router.get("/health")
async def health():
    return {"status": "ok"}


@router.post("/api/exams")
async def api_create_exam(
    body: CreateExamBody,
    request: Request,
    gateway: PersistenceGateway = Depends(get_gateway),
):
    try:
        record = await create_exam(
            gateway,
            user_id=_sid(request),
            subject_ids=body.subject_ids,
            question_count=body.question_count,
            time_limit_minutes=body.time_limit_minutes,
            mode=body.mode,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=502, detail=f"시험 생성에 실패했습니다. ({e.operation})")
    return {"exam_id": record.id, "total": record.total_questions, "ok": True}


@router.post("/api/start-sample-exam")
async def start_sample_exam(request: Request, gateway: PersistenceGateway = Depends(get_gateway)):
    body = CreateExamBody(subject_ids=[SAMPLE_SUBJECT_ID], question_count=5, time_limit_minutes=10)
    return await api_create_exam(body, request, gateway)


@router.post("/api/exams/{exam_id}/open")
async def open_exam(exam_id: str, request: Request, gateway: PersistenceGateway = Depends(get_gateway)):
    sid = _sid(request)
    existing = session.get_engine(sid, exam_id)
    if existing is not None and not existing.is_finished:
        return _state_to_dict(existing)

    try:
        engine = await ExamEngine.load(gateway, exam_id)
    except ExamFinishedError:
        raise HTTPException(
            status_code=409,
            detail={"message": "이미 종료된 시험입니다.", "redirect": _review_url(exam_id)},
        )
    except NotFoundError:
        raise HTTPException(status_code=404, detail="시험을 찾을 수 없습니다.")
    except InvariantViolation as e:
        logger.error(f"시험 로드 불가: {e}")
        raise HTTPException(status_code=409, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=502, detail=f"시험을 불러오지 못했습니다. ({e.operation})")

    if engine.state.exam.user_id != sid:
        raise HTTPException(status_code=404, detail="시험을 찾을 수 없습니다.")

    engine.start()
    session.put_engine(sid, engine)
    return _state_to_dict(engine)


@router.get("/api/exams/{exam_id}/state")
async def get_exam_state(exam_id: str, request: Request):
    return _state_to_dict(_get_engine(request, exam_id))


@router.post("/api/exams/{exam_id}/answer")
async def select_answer(exam_id: str, body: SelectAnswerBody, request: Request):
    engine = _get_engine(request, exam_id)
    return _mutate(engine, lambda: engine.select_answer(body.option))


@router.post("/api/exams/{exam_id}/flag")
async def toggle_flag(exam_id: str, request: Request):
    engine = _get_engine(request, exam_id)
    return _mutate(engine, engine.toggle_flag)


@router.post("/api/exams/{exam_id}/navigate")
async def navigate(exam_id: str, body: NavigateBody, request: Request):
    engine = _get_engine(request, exam_id)
    idx = max(0, min(body.index, engine.state.total - 1))
    return _mutate(engine, lambda: engine.go_to(idx))


@router.post("/api/exams/{exam_id}/next")
async def next_question(exam_id: str, request: Request):
    engine = _get_engine(request, exam_id)
    return _mutate(engine, engine.next)


@router.post("/api/exams/{exam_id}/previous")
async def previous_question(exam_id: str, request: Request):
    engine = _get_engine(request, exam_id)
    return _mutate(engine, engine.previous)


@router.post("/api/exams/{exam_id}/finish")
async def finish_exam(exam_id: str, request: Request):
    engine = _get_engine(request, exam_id)
    try:
        outcome = await engine.finalize(FinishReason.EXPLICIT)
    except PersistenceError as e:
        # 엔진은 유지 — 같은 요청으로 재시도 가능
        logger.error(f"시험 종료 실패: {exam_id} — {e}")
        raise HTTPException(status_code=502, detail="답안 저장에 실패했습니다. 다시 제출해 주세요.")
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    session.drop_engine(_sid(request), exam_id)
    return {**outcome.model_dump(mode="json"), "redirect": _review_url(exam_id), "ok": True}


@router.delete("/api/exams/{exam_id}")
async def close_exam(exam_id: str, request: Request):
    engine = session.drop_engine(_sid(request), exam_id)
    if engine is not None:
        await engine.flush_writes()
    return {"ok": True}


@router.get("/api/exams/{exam_id}/review")
async def get_review(
    exam_id: str,
    request: Request,
    only_errors: bool = False,
    gateway: PersistenceGateway = Depends(get_gateway),
):
    try:
        review = await build_review(gateway, exam_id, only_errors=only_errors)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="결과 정보가 없습니다.")
    except InvariantViolation:
        raise HTTPException(status_code=400, detail="시험이 아직 제출되지 않았습니다.")
    except PersistenceError as e:
        raise HTTPException(status_code=502, detail=f"결과를 불러오지 못했습니다. ({e.operation})")
    return review.model_dump(mode="json")


@router.post("/api/reset")
async def reset_session(request: Request):
    session.reset(_sid(request))
    return {"ok": True}
