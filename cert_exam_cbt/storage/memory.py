"""
storage/memory.py — 인메모리 저장소 (로컬 실행, 테스트용)

DynamoDB 저장소와 같은 계약을 가진다.
- 세션: (userId, sessionId) 키, 조건부 생성, TTL 힌트(expiresAt) 경과 시 정리 대상
- 결과: 생성 전용
- 문제: (certification, domain) 조회 + id 목록 일괄 조회 (batch_limit 상한)
"""

import json
import threading
import time
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from cert_exam_cbt.errors import ConflictError, NotFoundError
from cert_exam_cbt.models.question_model import Difficulty, Question
from cert_exam_cbt.models.result_model import ExamResult
from cert_exam_cbt.models.session_state import Answer, ExamSession, ExamStatus

DEFAULT_BATCH_LIMIT = 100
DEFAULT_EXPIRY_BUFFER = 3600  # 1시간


class InMemoryQuestionStore:
    def __init__(self, questions: Iterable[Question] = (), batch_limit: int = DEFAULT_BATCH_LIMIT):
        self.batch_limit = batch_limit
        self._lock = threading.Lock()
        self._by_id: Dict[str, Question] = {}
        self.batch_calls = 0
        for q in questions:
            self.add(q)

    def add(self, question: Question) -> None:
        with self._lock:
            self._by_id[question.question_id] = question

    def query(
        self,
        certification: str,
        domain: str,
        difficulty: Optional[Difficulty] = None,
    ) -> List[Question]:
        with self._lock:
            return [
                q for q in self._by_id.values()
                if q.certification == certification
                and q.domain == domain
                and (difficulty is None or q.difficulty == difficulty)
            ]

    def batch_get(self, question_ids: List[str]) -> List[Question]:
        """없는 id는 결과에서 빠진다 (예외 없음)."""
        if len(question_ids) > self.batch_limit:
            raise ValueError(f"batch_get accepts at most {self.batch_limit} ids, got {len(question_ids)}")
        with self._lock:
            self.batch_calls += 1
            return [self._by_id[qid] for qid in question_ids if qid in self._by_id]

    def __len__(self) -> int:
        return len(self._by_id)


def load_questions_file(path: str) -> List[Question]:
    """문제 JSON 파일 (camelCase 레코드 배열)을 읽는다."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return [Question.model_validate(item) for item in data]


class InMemorySessionStore:
    """
    세션 행 + 저장소 수준 만료 힌트.
    만료 힌트는 cleanup_expired()에서만 사용하며, 시험 로직은 읽지 않는다.
    """

    def __init__(self, expiry_buffer_seconds: int = DEFAULT_EXPIRY_BUFFER):
        self.expiry_buffer_seconds = expiry_buffer_seconds
        self._lock = threading.Lock()
        self._rows: Dict[Tuple[str, str], ExamSession] = {}
        self._expires: Dict[Tuple[str, str], int] = {}

    def get(self, user_id: str, session_id: str) -> Optional[ExamSession]:
        with self._lock:
            row = self._rows.get((user_id, session_id))
            return row.model_copy(deep=True) if row else None

    def create(self, session: ExamSession) -> ExamSession:
        key = (session.user_id, session.session_id)
        with self._lock:
            if key in self._rows:
                raise ConflictError(f"exam session {session.session_id} already exists")
            self._rows[key] = session.model_copy(deep=True)
            self._expires[key] = session.expires_at(self.expiry_buffer_seconds)
        return session

    def update_progress(
        self,
        user_id: str,
        session_id: str,
        answers: Dict[str, Answer],
        marked_for_review: List[str],
        updated_at: datetime,
    ) -> ExamSession:
        key = (user_id, session_id)
        with self._lock:
            row = self._rows.get(key)
            if row is None:
                raise NotFoundError("exam session not found")
            # 통째로 교체 (병합 없음, 버전 검사 없음)
            updated = row.model_copy(update={
                "answers": {k: v.model_copy() for k, v in answers.items()},
                "marked_for_review": list(dict.fromkeys(marked_for_review)),
                "updated_at": updated_at,
            })
            self._rows[key] = updated
            return updated.model_copy(deep=True)

    def update_status(
        self,
        user_id: str,
        session_id: str,
        status: ExamStatus,
        end_time: datetime,
    ) -> None:
        key = (user_id, session_id)
        with self._lock:
            row = self._rows.get(key)
            if row is None:
                raise NotFoundError("exam session not found")
            self._rows[key] = row.model_copy(update={
                "status": status,
                "end_time": end_time,
                "updated_at": end_time,
            })

    def cleanup_expired(self, now: Optional[float] = None) -> int:
        """만료 힌트가 지난 행을 정리. 제거된 수 반환."""
        now = time.time() if now is None else now
        removed = 0
        with self._lock:
            expired = [key for key, ts in self._expires.items() if now > ts]
            for key in expired:
                del self._rows[key]
                del self._expires[key]
                removed += 1
        return removed

    def __len__(self) -> int:
        return len(self._rows)


class InMemoryResultStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._rows: Dict[str, ExamResult] = {}

    def create(self, result: ExamResult) -> ExamResult:
        with self._lock:
            if result.result_id in self._rows:
                raise ConflictError(f"exam result {result.result_id} already exists")
            self._rows[result.result_id] = result
        return result

    def get(self, user_id: str, result_id: str) -> Optional[ExamResult]:
        with self._lock:
            row = self._rows.get(result_id)
        if row is None or row.user_id != user_id:
            return None
        return row

    def list_for_user(self, user_id: str, limit: int = 50) -> List[ExamResult]:
        with self._lock:
            rows = [r for r in self._rows.values() if r.user_id == user_id]
        rows.sort(key=lambda r: r.completed_at, reverse=True)
        return rows[:limit]

    def __len__(self) -> int:
        return len(self._rows)
