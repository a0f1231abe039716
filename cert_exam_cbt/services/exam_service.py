"""
services/exam_service.py

시험 채점 및 결과 분석 비즈니스 로직.
순수 Python 함수로 구성 — 저장소/이벤트 호출, 전역 상태 변경 없음.
"""

import math
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

from pydantic import Field

from cert_exam_cbt.models.catalog_model import ScoringConfig
from cert_exam_cbt.models.question_model import Question, WireModel
from cert_exam_cbt.models.result_model import DomainScore
from cert_exam_cbt.models.session_state import Answer


class ScoringOutcome(WireModel):
    """calculate_scores 결과 (저장 전 채점 값)."""
    scaled_score: int
    passed: bool
    correct_answers: int
    total_questions: int
    domain_breakdown: List[DomainScore] = Field(default_factory=list)


def round_half_up(value: float) -> int:
    """0.5는 올림 (음수 입력은 다루지 않음)."""
    return int(math.floor(value + 0.5))


def is_correct(question: Question, answer: Optional[Answer]) -> bool:
    """
    정답 판정: 선택한 보기 집합 == 정답 보기 집합 (순서 무관).

    미응답(답안 없음 또는 선택 0개)은 오답. 예외를 던지지 않는다.
    """
    if answer is None or not answer.selected_options:
        return False
    return set(answer.selected_options) == set(question.correct_answers or ())


def calculate_domain_scores(
    questions: Iterable[Question],
    user_answers: Mapping[str, Answer],
    config: ScoringConfig,
) -> List[DomainScore]:
    """
    영역별 점수를 계산한다.

    설정에 있는 영역은 0으로 미리 만들어 두고, 설정에 없는 영역은 문제에서
    처음 나올 때 추가한다. 설정과 문제 데이터가 항상 일치한다는 보장이 없다.

    Returns:
        DomainScore 리스트. 설정 영역 순서 → 신규 영역 등장 순.
    """
    buckets: Dict[str, DomainScore] = {
        name: DomainScore(domain=name) for name in config.domains
    }

    for q in questions:
        bucket = buckets.get(q.domain)
        if bucket is None:
            bucket = buckets[q.domain] = DomainScore(domain=q.domain)
        bucket.total_questions += 1
        if is_correct(q, user_answers.get(q.question_id)):
            bucket.correct_answers += 1

    for b in buckets.values():
        if b.total_questions > 0:
            ratio = b.correct_answers / b.total_questions
            b.percentage = round_half_up(ratio * 100)
            b.score = round_half_up(ratio * config.scaling_factor)
    return list(buckets.values())


def calculate_scores(
    questions: List[Question],
    user_answers: Mapping[str, Answer],
    config: ScoringConfig,
) -> ScoringOutcome:
    """
    전체 환산 점수와 합격 여부를 계산한다.

    scaled_score = round(정답 수 / 문항 수 * scaling_factor)
    문항이 하나도 없으면 0점, 불합격.
    """
    breakdown = calculate_domain_scores(questions, user_answers, config)
    correct = sum(b.correct_answers for b in breakdown)

    raw_ratio = correct / len(questions) if questions else 0.0
    scaled = round_half_up(raw_ratio * config.scaling_factor)

    return ScoringOutcome(
        scaled_score=scaled,
        passed=is_passed(scaled, config.passing_score),
        correct_answers=correct,
        total_questions=len(questions),
        domain_breakdown=breakdown,
    )


def calculate_time_spent(start_time: datetime, end_time: datetime) -> int:
    """소요 시간 (분, 반올림)."""
    seconds = (end_time - start_time).total_seconds()
    return round_half_up(max(seconds, 0.0) / 60)


def is_passed(score: int, pass_score: int) -> bool:
    return score >= pass_score
