"""
models/session_state.py

시험 세션(OMR 카드) 모델.
Pydantic BaseModel 기반 — 저장소 경계에서 직렬화/역직렬화.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field, field_validator

from cert_exam_cbt.models.question_model import Difficulty, Question, WireModel


class ExamType(str, Enum):
    MOCK = "MOCK"
    CUSTOM = "CUSTOM"
    PRACTICE = "PRACTICE"


class ExamStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"


MIXED_DIFFICULTY = "MIXED"


class Answer(WireModel):
    """
    문제 하나에 대한 제출 답안. 정오 여부는 저장하지 않는다 (채점 시에만 계산).
    """
    question_id: str = Field(..., min_length=1)
    selected_options: List[str] = Field(default_factory=list)
    time_spent: float = Field(default=0, ge=0, description="풀이 시간 (초)")
    timestamp: Optional[str] = None


def fill_answer_ids(answers):
    """
    {questionId: {selectedOptions, ...}} 형태에서 빠진 questionId를 키로 채운다.
    키와 다른 questionId가 들어 있으면 ValueError.
    """
    if not isinstance(answers, dict):
        return answers
    filled = {}
    for qid, answer in answers.items():
        if isinstance(answer, dict):
            answer = dict(answer)
            given = answer.setdefault("questionId", qid)
            if given != qid:
                raise ValueError(f"answer key {qid} does not match questionId {given}")
        filled[qid] = answer
    return filled


class CustomExamOptions(WireModel):
    domains: List[str] = Field(..., min_length=1)
    difficulty: Optional[str] = Field(
        default=None,
        description="EASY | MEDIUM | HARD | MIXED (None/MIXED이면 필터 없음)",
    )
    question_count: int = Field(..., ge=1, le=100)

    @field_validator("difficulty")
    @classmethod
    def validate_difficulty(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == MIXED_DIFFICULTY:
            return v
        return Difficulty(v).value

    def difficulty_filter(self) -> Optional[Difficulty]:
        if self.difficulty in (None, MIXED_DIFFICULTY):
            return None
        return Difficulty(self.difficulty)


class ExamSession(WireModel):
    """
    사용자의 시험 세션 전체 상태.

    상태 전이: IN_PROGRESS → COMPLETED | EXPIRED (단방향, 이후 불변).
    questions는 생성 시 확정된 출제 순서이며 PRACTICE는 항상 비어 있다.
    """
    session_id: str
    user_id: str
    exam_type: ExamType
    certification: str
    questions: List[str] = Field(default_factory=list)
    answers: Dict[str, Answer] = Field(default_factory=dict)
    marked_for_review: List[str] = Field(default_factory=list)
    start_time: datetime
    time_limit: int = Field(..., ge=1, description="제한 시간 (분)")
    status: ExamStatus = ExamStatus.IN_PROGRESS
    end_time: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("answers", mode="before")
    @classmethod
    def fill_question_ids(cls, v):
        # 기존 클라이언트가 저장한 답안에는 questionId가 없다
        return fill_answer_ids(v)

    @field_validator("marked_for_review")
    @classmethod
    def dedupe_marked(cls, v: List[str]) -> List[str]:
        # 집합 의미. 순서는 최초 등장 순으로 유지
        return list(dict.fromkeys(v))

    @property
    def deadline(self) -> datetime:
        return self.start_time + timedelta(minutes=self.time_limit)

    @property
    def is_active(self) -> bool:
        return self.status is ExamStatus.IN_PROGRESS

    def is_past_deadline(self, now: datetime) -> bool:
        return now > self.deadline

    def expires_at(self, buffer_seconds: int) -> int:
        """저장소 TTL 힌트 (epoch 초): 제한 시간 + 버퍼."""
        return int(self.deadline.timestamp()) + buffer_seconds


class StartedExam(WireModel):
    """startExam 응답: 세션 + 출제 문제 페이로드."""
    session: ExamSession
    question_items: List[Question] = Field(default_factory=list)

    def to_wire(self) -> dict:
        # 세션 필드를 펼치고 questions 자리에 문제 본문을 담는다
        data = self.session.to_wire()
        data["questions"] = [q.to_wire() for q in self.question_items]
        return data
