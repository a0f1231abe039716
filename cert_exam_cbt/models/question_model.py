from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

# model_validate(..., context=STORED_CONTEXT): 저장소에서 읽은 레코드
STORED_CONTEXT = {"stored": True}


def _is_stored(info: ValidationInfo) -> bool:
    return bool(info.context and info.context.get("stored"))


class WireModel(BaseModel):
    """
    외부 계약(JSON/DynamoDB)은 camelCase, 파이썬 쪽은 snake_case.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class Difficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class QuestionType(str, Enum):
    MCQ = "MCQ"  # 단일 정답
    MRQ = "MRQ"  # 복수 정답


class QuestionOption(WireModel):
    id: str = Field(..., min_length=1, description="보기 식별자 (예: 'A')")
    text: str = Field(..., description="보기 내용")


class Reference(WireModel):
    title: str
    url: str
    type: str = Field(
        default="documentation",
        description="documentation | whitepaper | faq | blog",
    )


class Question(WireModel):
    """
    자격증 문제 모델.
    세션/채점 흐름에서는 읽기 전용으로만 다룬다.
    """
    question_id: str = Field(..., min_length=1, description="문제 고유 식별자")
    certification: str = Field(..., min_length=1, description="자격증 코드 (예: SAA-C03)")
    domain: str = Field(..., min_length=1, description="출제 영역")
    difficulty: Difficulty = Difficulty.MEDIUM
    question_text: str = Field(..., min_length=1, description="발문")
    question_type: QuestionType = QuestionType.MCQ
    options: List[QuestionOption] = Field(..., description="보기 리스트 (순서 유지)")
    correct_answers: Optional[List[str]] = Field(
        default=None,
        description="정답 보기 id 목록. 응시 중 페이로드에서는 None",
    )
    explanation: Optional[str] = Field(default=None, description="해설")
    references: List[Reference] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("options")
    @classmethod
    def validate_options_length(cls, v: List[QuestionOption], info: ValidationInfo) -> List[QuestionOption]:
        if _is_stored(info):
            return v
        if not 2 <= len(v) <= 6:
            raise ValueError("options must contain between 2 and 6 entries")
        return v

    @model_validator(mode="after")
    def validate_correct_answers(self, info: ValidationInfo) -> "Question":
        """
        정답이 주어진 경우에만 검증한다 (가림 처리된 문제는 None).
        - 정답 id는 모두 보기 id 안에 있어야 한다.
        - MCQ는 정답 1개, MRQ는 1개 이상.
        출제 규칙은 작성 시점에만 적용하고 저장소에서 읽은 문제에는 적용하지 않는다.
        """
        if self.correct_answers is None or _is_stored(info):
            return self
        option_ids = {o.id for o in self.options}
        unknown = set(self.correct_answers) - option_ids
        if unknown:
            raise ValueError(f"correct answers {sorted(unknown)} are not option ids")
        if self.question_type is QuestionType.MCQ and len(set(self.correct_answers)) != 1:
            raise ValueError("MCQ must have exactly 1 correct answer")
        if self.question_type is QuestionType.MRQ and not self.correct_answers:
            raise ValueError("MRQ must have at least 1 correct answer")
        return self

    @classmethod
    def from_stored(cls, data: dict) -> "Question":
        return cls.model_validate(data, context=STORED_CONTEXT)

    def redacted(self) -> "Question":
        """정답과 해설을 제거한 사본 (모의고사 응시 중 노출용)."""
        return self.model_copy(update={"correct_answers": None, "explanation": None})
