"""
api/session.py — 멀티유저 인메모리 세션 (쿠키 기반)

각 사용자에게 UUID 세션 ID를 발급하고, 세션별로 열려 있는 시험 엔진을 보관.
세션 ID는 시험 소유자 식별자로도 쓰인다.
TTL 경과 시 만료되며, 만료된 세션의 엔진은 타이머를 멈추고 폐기한다 (시험 종료는 아님).
"""

import logging
import threading
import time
import uuid
from typing import Any

from api.config import SESSION_TTL
from practice_exam_cbt.services.exam_engine import ExamEngine

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_sessions: dict[str, dict[str, Any]] = {}
_timestamps: dict[str, float] = {}


def _new_state() -> dict[str, Any]:
    return {
        "engines": {},   # exam_id -> ExamEngine
    }


def _close_engines(state: dict[str, Any]) -> None:
    for engine in state["engines"].values():
        engine.close()
    state["engines"].clear()


def create_session() -> str:
    """새 세션을 생성하고 세션 ID를 반환."""
    sid = uuid.uuid4().hex
    with _lock:
        _sessions[sid] = _new_state()
        _timestamps[sid] = time.time()
    return sid


def get_session(sid: str) -> dict[str, Any] | None:
    """세션 ID로 세션 데이터를 가져옴. 만료되었거나 없으면 None."""
    with _lock:
        if sid not in _sessions:
            return None
        if time.time() - _timestamps[sid] > SESSION_TTL:
            state = _sessions.pop(sid)
            del _timestamps[sid]
            _close_engines(state)
            return None
        _timestamps[sid] = time.time()  # 접근 시 갱신
        return _sessions[sid]


def get_engine(sid: str, exam_id: str) -> ExamEngine | None:
    session = get_session(sid)
    if session is None:
        return None
    return session["engines"].get(exam_id)


def put_engine(sid: str, engine: ExamEngine) -> None:
    """엔진 등록. 같은 시험의 기존 엔진은 닫고 교체."""
    exam_id = engine.state.exam.id
    with _lock:
        if sid not in _sessions:
            return
        old = _sessions[sid]["engines"].get(exam_id)
        if old is not None and old is not engine:
            old.close()
        _sessions[sid]["engines"][exam_id] = engine
        _timestamps[sid] = time.time()


def drop_engine(sid: str, exam_id: str) -> ExamEngine | None:
    """엔진 폐기 (화면 해제). 타이머를 멈추고 반환."""
    with _lock:
        if sid not in _sessions:
            return None
        engine = _sessions[sid]["engines"].pop(exam_id, None)
    if engine is not None:
        engine.close()
    return engine


def reset(sid: str) -> None:
    """세션 초기화: 열려 있는 엔진을 모두 닫는다."""
    with _lock:
        if sid in _sessions:
            _close_engines(_sessions[sid])
            _timestamps[sid] = time.time()


def cleanup_expired() -> int:
    """만료된 세션을 정리. 제거된 수 반환."""
    now = time.time()
    removed = 0
    with _lock:
        expired = [sid for sid, ts in _timestamps.items() if now - ts > SESSION_TTL]
        for sid in expired:
            _close_engines(_sessions.pop(sid))
            del _timestamps[sid]
            removed += 1
    return removed
