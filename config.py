import os

# 기본 디렉토리 설정
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# 경로 설정
LOG_FILE = os.getenv("LOG_FILE", os.path.join(BASE_DIR, "launch.log"))
EXAM_CATALOG_PATH = os.getenv("EXAM_CATALOG_PATH") or None  # None이면 패키지 내장 catalog.json
QUESTION_SEED_PATH = os.getenv("QUESTION_SEED_PATH") or None  # 인메모리 저장소 초기 문제 (JSON)

# 서버 설정
DEFAULT_HOST = os.getenv("HOST", "0.0.0.0")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))
USER_ID_HEADER = os.getenv("USER_ID_HEADER", "X-User-Id")

# 저장소 설정 ("memory" | "dynamodb")
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "memory")
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
QUESTIONS_TABLE_NAME = os.getenv("QUESTIONS_TABLE_NAME", "Questions")
EXAM_SESSIONS_TABLE_NAME = os.getenv("EXAM_SESSIONS_TABLE_NAME", "ExamSessions")
RESULTS_TABLE_NAME = os.getenv("RESULTS_TABLE_NAME", "ExamResults")
BATCH_GET_LIMIT = int(os.getenv("BATCH_GET_LIMIT", "100"))  # DynamoDB 일괄 조회 상한

# 세션 TTL 힌트 = 제한 시간 + 버퍼
SESSION_EXPIRY_BUFFER_SECONDS = int(os.getenv("SESSION_EXPIRY_BUFFER_SECONDS", "3600"))
STORE_SWEEP_INTERVAL = int(os.getenv("STORE_SWEEP_INTERVAL", "300"))  # 인메모리 저장소 정리 주기 (초)

# 이벤트 설정 (EVENT_BUS_NAME이 비어 있으면 로그로만 남김)
EVENT_BUS_NAME = os.getenv("EVENT_BUS_NAME", "")
EVENT_SOURCE = os.getenv("EVENT_SOURCE", "aws.certification.platform")

# 시험 규칙
PRACTICE_TIME_LIMIT = 60        # 연습 모드 제한 시간 (분)
CUSTOM_MINUTES_PER_QUESTION = 2
CUSTOM_MIN_TIME_LIMIT = 60
CUSTOM_MAX_TIME_LIMIT = 300
RESULTS_PAGE_SIZE = 50
