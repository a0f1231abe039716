"""
models/catalog_model.py

자격증별 정적 설정 (출제 템플릿 + 채점 설정).
프로세스 시작 시 한 번 로드되며 이후 변경되지 않는다.
"""

from typing import List, Optional, Tuple

from pydantic import ConfigDict, Field, model_validator

from cert_exam_cbt.models.question_model import WireModel


class FrozenModel(WireModel):
    model_config = ConfigDict(frozen=True)


class DomainSpec(FrozenModel):
    name: str = Field(..., min_length=1)
    percentage: float = Field(..., gt=0, le=100, description="출제 비중 (%)")
    min_questions: int = Field(default=0, ge=0)
    max_questions: int = Field(default=0, ge=0)


class ExamTemplate(FrozenModel):
    total_questions: int = Field(..., ge=1)
    time_limit: int = Field(..., ge=1, description="제한 시간 (분)")
    domains: Tuple[DomainSpec, ...] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_distribution(self) -> "ExamTemplate":
        total = sum(d.percentage for d in self.domains)
        if total > 100:
            raise ValueError(f"domain percentages add up to {total}, expected at most 100")
        return self

    def questions_for(self, domain: DomainSpec) -> int:
        """영역별 출제 수 = floor(총 문항 수 * 비중 / 100)."""
        return int(self.total_questions * domain.percentage // 100)


class ScoringConfig(FrozenModel):
    passing_score: int = Field(..., ge=0)
    scaling_factor: int = Field(..., ge=1)
    domains: Tuple[str, ...] = ()

    @model_validator(mode="after")
    def validate_passing_score(self) -> "ScoringConfig":
        if self.passing_score > self.scaling_factor:
            raise ValueError("passing score cannot exceed the scaling factor")
        return self


class CertificationEntry(FrozenModel):
    code: str
    name: str = ""
    template: Optional[ExamTemplate] = None
    scoring: Optional[ScoringConfig] = None

    @property
    def domain_names(self) -> List[str]:
        if self.template:
            return [d.name for d in self.template.domains]
        return list(self.scoring.domains) if self.scoring else []
