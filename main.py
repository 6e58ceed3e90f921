"""
main.py — 모의고사 CBT 서버 진입점
"""

import os
import sys
import logging
import traceback

# ── 패키지 경로 설정 (반드시 최상단) ──────────────────────────────────────────
_BASE_DIR = os.path.dirname(os.path.abspath(__file__))
if _BASE_DIR not in sys.path:
    sys.path.insert(0, _BASE_DIR)

from config import BASE_DIR, LOG_FILE, DEFAULT_HOST, DEFAULT_PORT

logger = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO) -> None:
    try:
        logging.basicConfig(
            level=level,
            format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            handlers=[
                logging.FileHandler(LOG_FILE, encoding='utf-8'),
                logging.StreamHandler(sys.stdout)
            ]
        )
    except PermissionError:
        # 로그 파일 점유 시 콘솔 출력만 사용
        logging.basicConfig(level=level)


def run_server(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
    import uvicorn
    from api.app import create_app
    logger.info(f"Uvicorn 서버 시작 - {host}:{port}")
    # 엔진 타이머와 세션 레지스트리가 프로세스 메모리에 있으므로 워커는 1개
    uvicorn.run(create_app(), host=host, port=port, log_level="info", workers=1)


if __name__ == "__main__":
    setup_logging()
    logger.info("=== Practice Exam CBT Server Started ===")
    os.chdir(BASE_DIR)
    try:
        run_server()
    except KeyboardInterrupt:
        logger.info("사용자에 의해 종료되었습니다.")
    except Exception:
        logger.error(f"서버 오류 발생:\n{traceback.format_exc()}")
        sys.exit(1)
