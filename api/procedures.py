"""
api/procedures.py — 이름 있는 원격 프로시저 (startExam, saveExamProgress, submitExam ...)

HTTP 라우트(api/routes.py)와 리졸버 핸들러(api/handler.py)가 같은 입력 모델과
dispatch()를 공유한다. 응답은 camelCase dict.
"""

from typing import Any, Dict, List, Optional

from pydantic import Field, ValidationError, field_validator

from cert_exam_cbt.errors import InvalidInputError, UnauthenticatedError
from cert_exam_cbt.models.question_model import WireModel
from cert_exam_cbt.models.session_state import Answer, CustomExamOptions, ExamType, fill_answer_ids
from cert_exam_cbt.services.container import Services


# ── 입력 모델 ────────────────────────────────────────────────────────────────

class StartExamInput(WireModel):
    certification: str = Field(..., min_length=1)
    exam_type: ExamType
    custom_options: Optional[CustomExamOptions] = None


class SaveProgressInput(WireModel):
    session_id: str = Field(..., min_length=1)
    answers: Dict[str, Answer] = Field(default_factory=dict)
    marked_for_review: List[str] = Field(default_factory=list)

    @field_validator("answers", mode="before")
    @classmethod
    def fill_question_ids(cls, v):
        # 클라이언트는 {questionId: {selectedOptions, ...}} 형태로 보낸다
        return fill_answer_ids(v)


class SessionRefInput(WireModel):
    session_id: str = Field(..., min_length=1)


class ResultRefInput(WireModel):
    result_id: str = Field(..., min_length=1)


class ListResultsInput(WireModel):
    limit: Optional[int] = Field(default=None, ge=1, le=100)


# ── 프로시저 ─────────────────────────────────────────────────────────────────

def start_exam(services: Services, user_id: str, body: StartExamInput) -> dict:
    started = services.session_manager.start_exam(
        user_id, body.certification, body.exam_type, body.custom_options
    )
    return started.to_wire()


def save_exam_progress(services: Services, user_id: str, body: SaveProgressInput) -> dict:
    session = services.session_manager.save_exam_progress(
        body.session_id, user_id, body.answers, body.marked_for_review
    )
    return session.to_wire()


def submit_exam(services: Services, user_id: str, body: SessionRefInput) -> dict:
    return services.scoring_engine.submit_exam(body.session_id, user_id).to_wire()


def get_exam_session(services: Services, user_id: str, body: SessionRefInput) -> dict:
    return services.session_manager.get_exam_session(body.session_id, user_id).to_wire()


def get_exam_results(services: Services, user_id: str, body: ListResultsInput) -> List[dict]:
    return [r.to_wire() for r in services.scoring_engine.list_results(user_id, body.limit)]


def get_exam_result(services: Services, user_id: str, body: ResultRefInput) -> dict:
    return services.scoring_engine.get_result(user_id, body.result_id).to_wire()


PROCEDURES: Dict[str, tuple] = {
    "startExam": (StartExamInput, start_exam),
    "saveExamProgress": (SaveProgressInput, save_exam_progress),
    "submitExam": (SessionRefInput, submit_exam),
    "getExamSession": (SessionRefInput, get_exam_session),
    "getExamResults": (ListResultsInput, get_exam_results),
    "getExamResult": (ResultRefInput, get_exam_result),
}


def parse_input(field_name: str, arguments: Dict[str, Any]):
    """
    리졸버 계약: startExam/saveExamProgress는 {"input": {...}},
    나머지는 인자를 바로 받는다. 두 형태 모두 허용한다.
    """
    if field_name not in PROCEDURES:
        raise InvalidInputError(f"unknown field: {field_name}")
    model, _ = PROCEDURES[field_name]
    payload = arguments or {}
    if isinstance(payload.get("input"), dict):
        payload = payload["input"]
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise InvalidInputError(f"invalid arguments for {field_name}: {e}") from e


def dispatch(services: Services, field_name: str, arguments: Dict[str, Any], user_id: Optional[str]):
    if not user_id:
        raise UnauthenticatedError("user authentication required")
    body = parse_input(field_name, arguments)
    _, procedure = PROCEDURES[field_name]
    return procedure(services, user_id, body)