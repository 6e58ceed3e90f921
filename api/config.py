import os

# 기본 디렉토리 설정
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# 경로 설정
STATIC_DIR = os.path.join(BASE_DIR, "static")

# 세션 설정
SESSION_COOKIE = "exam_session"
SESSION_TTL = 3600 * 4        # 4시간 (최대 시험 시간보다 길게)
CLEANUP_INTERVAL = 300        # 만료 세션 정리 주기 (초)
