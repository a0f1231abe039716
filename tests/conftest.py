import random
from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from cert_exam_cbt.models.question_model import Difficulty, Question, QuestionOption, QuestionType
from cert_exam_cbt.services.catalog import ExamCatalog, load_catalog
from cert_exam_cbt.services.notifier import RecordingNotifier
from cert_exam_cbt.services.scoring_engine import ScoringEngine
from cert_exam_cbt.services.session_manager import ExamSessionManager
from cert_exam_cbt.storage.memory import (
    InMemoryQuestionStore,
    InMemoryResultStore,
    InMemorySessionStore,
)

CLF_DOMAINS = [
    "Cloud Concepts",
    "Security and Compliance",
    "Technology",
    "Billing and Pricing",
]

START = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FailingNotifier:
    def __init__(self):
        self.calls = 0

    def publish(self, detail_type, detail):
        self.calls += 1
        raise ConnectionError("event bus unavailable")


def make_question(
    question_id: str,
    domain: str = "Cloud Concepts",
    certification: str = "CLF-C01",
    correct=("A",),
    question_type: QuestionType = QuestionType.MCQ,
    difficulty: Difficulty = Difficulty.MEDIUM,
) -> Question:
    return Question(
        question_id=question_id,
        certification=certification,
        domain=domain,
        difficulty=difficulty,
        question_text=f"Question {question_id}?",
        question_type=question_type,
        options=[QuestionOption(id=o, text=f"Option {o}") for o in "ABCD"],
        correct_answers=list(correct),
        explanation=f"Explanation for {question_id}",
        tags=["test"],
    )


def make_bank(per_domain: int = 25, certification: str = "CLF-C01", domains=CLF_DOMAINS):
    questions = []
    for d_idx, domain in enumerate(domains):
        for i in range(per_domain):
            difficulty = list(Difficulty)[i % 3]
            questions.append(make_question(
                f"{certification}-{d_idx}-{i}",
                domain=domain,
                certification=certification,
                difficulty=difficulty,
            ))
    return questions


def sequential_ids(prefix: str):
    counter = count(1)
    return lambda: f"{prefix}-{next(counter)}"


@pytest.fixture()
def clock():
    return FixedClock()


@pytest.fixture()
def catalog() -> ExamCatalog:
    return load_catalog()


@pytest.fixture()
def question_store():
    return InMemoryQuestionStore(make_bank())


@pytest.fixture()
def session_store():
    return InMemorySessionStore()


@pytest.fixture()
def result_store():
    return InMemoryResultStore()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def manager(question_store, session_store, catalog, notifier, clock):
    return ExamSessionManager(
        question_store,
        session_store,
        catalog,
        notifier,
        rng=random.Random(42),
        clock=clock,
        id_factory=sequential_ids("session"),
    )


@pytest.fixture()
def engine(question_store, session_store, result_store, catalog, notifier, clock):
    return ScoringEngine(
        question_store,
        session_store,
        result_store,
        catalog,
        notifier,
        clock=clock,
        id_factory=sequential_ids("result"),
    )
