"""
services/session_manager.py

시험 세션 생성(startExam)과 진행 상황 저장(saveExamProgress).

출제 규칙
  MOCK      템플릿 영역별 floor(총 문항 * 비중 / 100)개씩 무작위 추출 → 전체 재셔플
  CUSTOM    선택 영역(난이도 필터 선택)의 문제를 합친 풀에서 question_count개 추출
  PRACTICE  문제 없음 (요청 시 별도 조회), 제한 시간 60분

무작위 추출은 주입된 random.Random을 사용한다 (테스트에서 시드 고정).
"""

import logging
import random
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

import config
from cert_exam_cbt.errors import (
    ExpiredError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from cert_exam_cbt.models.catalog_model import ExamTemplate
from cert_exam_cbt.models.question_model import Question
from cert_exam_cbt.models.session_state import (
    Answer,
    CustomExamOptions,
    ExamSession,
    ExamStatus,
    ExamType,
    StartedExam,
)
from cert_exam_cbt.services.catalog import ExamCatalog
from cert_exam_cbt.services.notifier import EXAM_EXPIRED, EXAM_STARTED, publish_safely

logger = logging.getLogger(__name__)

T = TypeVar("T")

EXPIRY_REASON = "TIME_LIMIT_EXCEEDED"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def draw(items: Sequence[T], count: int, rng: random.Random) -> List[T]:
    """
    비복원 균등 추출. 사본을 셔플(Fisher-Yates)한 뒤 앞에서 count개를 자른다.
    count가 풀보다 크면 전부 반환한다.
    """
    pool = list(items)
    rng.shuffle(pool)
    return pool[:max(count, 0)]


def custom_time_limit(question_count: int) -> int:
    """문항당 2분, 60~300분으로 제한."""
    minutes = question_count * config.CUSTOM_MINUTES_PER_QUESTION
    return max(config.CUSTOM_MIN_TIME_LIMIT, min(config.CUSTOM_MAX_TIME_LIMIT, minutes))


class ExamSessionManager:
    def __init__(
        self,
        question_store,
        session_store,
        catalog: ExamCatalog,
        notifier=None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.question_store = question_store
        self.session_store = session_store
        self.catalog = catalog
        self.notifier = notifier
        self.rng = rng or random.Random()
        self.clock = clock
        self.id_factory = id_factory

    # ── startExam ──────────────────────────────────────────────────────────

    def start_exam(
        self,
        user_id: str,
        certification: str,
        exam_type: ExamType,
        custom_options: Optional[CustomExamOptions] = None,
    ) -> StartedExam:
        try:
            exam_type = ExamType(exam_type)
        except ValueError as e:
            raise InvalidInputError(f"unsupported exam type: {exam_type}") from e
        if exam_type is not ExamType.CUSTOM and certification not in self.catalog:
            raise InvalidInputError(f"unsupported certification: {certification}")
        if exam_type is ExamType.CUSTOM and custom_options is None:
            raise InvalidInputError("custom options required for custom exam")

        if exam_type is ExamType.MOCK:
            template = self.catalog.template(certification)
            if template is None:
                raise InvalidInputError(f"no mock exam template for certification: {certification}")
            questions = self.generate_mock_exam(certification, template)
            time_limit = template.time_limit
        elif exam_type is ExamType.CUSTOM:
            questions = self.generate_custom_exam(certification, custom_options)
            time_limit = custom_time_limit(custom_options.question_count)
        else:
            questions = []
            time_limit = config.PRACTICE_TIME_LIMIT

        now = self.clock()
        session = ExamSession(
            session_id=self.id_factory(),
            user_id=user_id,
            exam_type=exam_type,
            certification=certification,
            questions=[q.question_id for q in questions],
            start_time=now,
            time_limit=time_limit,
            status=ExamStatus.IN_PROGRESS,
            created_at=now,
            updated_at=now,
        )
        self.session_store.create(session)
        logger.info(
            f"시험 시작: session={session.session_id} user={user_id} "
            f"{certification}/{exam_type.value} 문항 {len(questions)}개, {time_limit}분"
        )

        publish_safely(self.notifier, EXAM_STARTED, {
            "sessionId": session.session_id,
            "userId": user_id,
            "certification": certification,
            "examType": exam_type.value,
            "startTime": session.to_wire()["startTime"],
        })

        if exam_type is ExamType.MOCK:
            # 모의고사는 제출 전까지 정답/해설을 숨긴다
            questions = [q.redacted() for q in questions]
        return StartedExam(session=session, question_items=questions)

    def generate_mock_exam(self, certification: str, template: ExamTemplate) -> List[Question]:
        selected: List[Question] = []
        for domain in template.domains:
            count = template.questions_for(domain)
            available = self.question_store.query(certification, domain.name)
            if len(available) < count:
                logger.warning(
                    f"영역 문제 부족: {certification}/{domain.name} "
                    f"필요 {count}개, 보유 {len(available)}개"
                )
            selected.extend(draw(available, count, self.rng))
        # 영역 순서가 드러나지 않도록 전체를 한 번 더 섞는다
        return draw(selected, len(selected), self.rng)

    def generate_custom_exam(self, certification: str, options: CustomExamOptions) -> List[Question]:
        difficulty = options.difficulty_filter()
        pool: Dict[str, Question] = {}
        for domain in options.domains:
            for q in self.question_store.query(certification, domain, difficulty):
                pool.setdefault(q.question_id, q)
        if len(pool) < options.question_count:
            logger.warning(
                f"사용자 지정 시험 문제 부족: 요청 {options.question_count}개, 보유 {len(pool)}개"
            )
        return draw(list(pool.values()), options.question_count, self.rng)

    # ── saveExamProgress ───────────────────────────────────────────────────

    def save_exam_progress(
        self,
        session_id: str,
        user_id: str,
        answers: Dict[str, Answer],
        marked_for_review: Iterable[str] = (),
    ) -> ExamSession:
        """
        답안과 검토 표시를 통째로 교체한다 (마지막 쓰기 우선, 버전 검사 없음).

        제한 시간이 지난 세션은 갱신하지 않고 EXPIRED로 전환한 뒤 ExpiredError를 던진다.
        """
        session = self.get_exam_session(session_id, user_id)
        if not session.is_active:
            raise InvalidStateError("session is not active")

        now = self.clock()
        if session.is_past_deadline(now):
            self._expire(session, now)
            raise ExpiredError("session has expired and been closed")

        return self.session_store.update_progress(
            user_id, session_id, dict(answers), list(marked_for_review), now
        )

    def get_exam_session(self, session_id: str, user_id: str) -> ExamSession:
        session = self.session_store.get(user_id, session_id)
        if session is None:
            raise NotFoundError("exam session not found")
        return session

    def _expire(self, session: ExamSession, now: datetime) -> None:
        self.session_store.update_status(session.user_id, session.session_id, ExamStatus.EXPIRED, now)
        logger.info(f"제한 시간 초과로 세션 만료: session={session.session_id} user={session.user_id}")
        publish_safely(self.notifier, EXAM_EXPIRED, {
            "sessionId": session.session_id,
            "userId": session.user_id,
            "reason": EXPIRY_REASON,
        })
