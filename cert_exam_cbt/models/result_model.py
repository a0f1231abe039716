from datetime import datetime
from typing import List

from pydantic import ConfigDict, Field

from cert_exam_cbt.models.question_model import WireModel
from cert_exam_cbt.models.session_state import ExamType


class DomainScore(WireModel):
    domain: str
    total_questions: int = 0
    correct_answers: int = 0
    score: int = 0
    percentage: int = 0


class ExamResult(WireModel):
    """
    제출 1회당 정확히 한 번 생성되는 채점 결과. 생성 후 변경하지 않는다.
    """
    model_config = ConfigDict(frozen=True)

    result_id: str
    session_id: str
    user_id: str
    certification: str
    exam_type: ExamType
    scaled_score: int = Field(..., ge=0)
    passed: bool
    domain_breakdown: List[DomainScore] = Field(default_factory=list)
    total_questions: int = Field(..., ge=0)
    correct_answers: int = Field(..., ge=0)
    completed_at: datetime
    time_spent: int = Field(..., description="소요 시간 (분)")
