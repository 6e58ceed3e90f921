import os

from dotenv import load_dotenv

load_dotenv()

# 기본 디렉토리 설정
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# 경로 설정
LOG_FILE = os.path.join(BASE_DIR, "launch.log")

# 서버 설정
DEFAULT_HOST = os.getenv("HOST", "0.0.0.0")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))

# 저장소 설정 (memory | supabase)
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "memory")
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")

# 시험 설정
DEFAULT_TIME_LIMIT_MINUTES = 60
LOW_TIME_THRESHOLD_SECONDS = 300   # 5분 미만이면 경고 표시
TICK_INTERVAL_SECONDS = 1.0
QUESTION_POOL_LIMIT = 200          # 시험 생성 시 과목별 후보 문제 최대 수
MAX_QUESTIONS_PER_EXAM = 200
PASS_SCORE = 60.0
