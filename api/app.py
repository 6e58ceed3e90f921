"""
api/app.py — FastAPI 앱 인스턴스 + 세션 미들웨어 + static 파일 서빙
"""

import asyncio
import contextlib
import logging
import os

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse

from config import STORAGE_BACKEND
from api.config import CLEANUP_INTERVAL, SESSION_COOKIE, SESSION_TTL, STATIC_DIR
from api.routes import router
from api.sample_questions import SAMPLE_QUESTIONS
import api.session as session
from practice_exam_cbt.services.gateway import InMemoryGateway, PersistenceGateway

logger = logging.getLogger(__name__)


def make_gateway(backend: str = STORAGE_BACKEND) -> PersistenceGateway:
    """설정된 저장소 종류에 맞는 Persistence Gateway 생성."""
    if backend == "supabase":
        from practice_exam_cbt.services.supabase_gateway import SupabaseGateway, make_client
        logger.info("저장소: Supabase")
        return SupabaseGateway(make_client())

    logger.info("저장소: 인메모리 (샘플 문제 시드)")
    gateway = InMemoryGateway()
    gateway.add_questions(SAMPLE_QUESTIONS)
    return gateway


async def _cleanup_loop() -> None:
    # 만료 세션 주기적 정리 — 엔진 타이머와 같은 이벤트 루프에서 실행
    while True:
        await asyncio.sleep(CLEANUP_INTERVAL)
        removed = session.cleanup_expired()
        if removed:
            logger.info(f"만료 세션 {removed}개 정리")


@contextlib.asynccontextmanager
async def _lifespan(app: FastAPI):
    task = asyncio.create_task(_cleanup_loop())
    try:
        yield
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


def create_app(gateway: PersistenceGateway | None = None) -> FastAPI:
    app = FastAPI(title="Practice Exam CBT", docs_url=None, redoc_url=None, lifespan=_lifespan)
    app.state.gateway = gateway if gateway is not None else make_gateway()

    # CORS (모바일 브라우저 등 다양한 출처 허용)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 세션 미들웨어: 쿠키에서 세션 ID를 읽고, 없으면 새로 발급
    @app.middleware("http")
    async def session_middleware(request: Request, call_next):
        sid = request.cookies.get(SESSION_COOKIE)
        if not sid or session.get_session(sid) is None:
            sid = session.create_session()

        request.state.session_id = sid
        response: Response = await call_next(request)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=sid,
            httponly=True,
            samesite="lax",
            max_age=SESSION_TTL,
        )
        return response

    app.include_router(router)

    # static 파일 마운트
    if os.path.isdir(STATIC_DIR):
        app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    # 루트 → index.html
    @app.get("/")
    async def serve_index():
        index_path = os.path.join(STATIC_DIR, "index.html")
        if os.path.exists(index_path):
            return FileResponse(index_path)
        return {"error": "index.html not found"}

    return app
