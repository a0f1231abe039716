"""
services/scoring_engine.py

시험 제출(submitExam): 세션 → 정답 포함 문제 조회 → 채점 → 결과 저장 →
세션 COMPLETED 전환 → ExamCompleted 이벤트.

결과 조회(getExamResults / getExamResult)도 여기서 담당한다.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional

import config
from cert_exam_cbt.errors import InvalidStateError, NotFoundError
from cert_exam_cbt.models.question_model import Question
from cert_exam_cbt.models.result_model import ExamResult
from cert_exam_cbt.models.session_state import ExamSession, ExamStatus
from cert_exam_cbt.services.catalog import ExamCatalog
from cert_exam_cbt.services.exam_service import calculate_scores, calculate_time_spent
from cert_exam_cbt.services.notifier import EXAM_COMPLETED, publish_safely
from cert_exam_cbt.services.session_manager import utc_now

logger = logging.getLogger(__name__)


class ScoringEngine:
    def __init__(
        self,
        question_store,
        session_store,
        result_store,
        catalog: ExamCatalog,
        notifier=None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.question_store = question_store
        self.session_store = session_store
        self.result_store = result_store
        self.catalog = catalog
        self.notifier = notifier
        self.clock = clock
        self.id_factory = id_factory

    def submit_exam(self, session_id: str, user_id: str) -> ExamResult:
        session = self.session_store.get(user_id, session_id)
        if session is None:
            raise NotFoundError("exam session not found")
        self._check_submittable(session)

        scoring = self.catalog.require_scoring(session.certification)
        questions = self.fetch_questions(session.questions)
        if len(questions) < len(session.questions):
            logger.warning(
                f"채점 대상 문제 누락: session={session_id} "
                f"요청 {len(session.questions)}개, 조회 {len(questions)}개"
            )

        outcome = calculate_scores(questions, session.answers, scoring)
        completed_at = self.clock()
        result = ExamResult(
            result_id=self.id_factory(),
            session_id=session_id,
            user_id=user_id,
            certification=session.certification,
            exam_type=session.exam_type,
            scaled_score=outcome.scaled_score,
            passed=outcome.passed,
            domain_breakdown=outcome.domain_breakdown,
            total_questions=outcome.total_questions,
            correct_answers=outcome.correct_answers,
            completed_at=completed_at,
            time_spent=calculate_time_spent(session.start_time, completed_at),
        )

        self.result_store.create(result)
        self.session_store.update_status(user_id, session_id, ExamStatus.COMPLETED, completed_at)
        logger.info(
            f"채점 완료: session={session_id} user={user_id} "
            f"{outcome.correct_answers}/{outcome.total_questions} → {outcome.scaled_score}점 "
            f"({'합격' if outcome.passed else '불합격'})"
        )

        publish_safely(self.notifier, EXAM_COMPLETED, {
            "sessionId": session_id,
            "userId": user_id,
            "resultId": result.result_id,
            "certification": result.certification,
            "examType": result.exam_type.value,
            "scaledScore": result.scaled_score,
            "passed": result.passed,
            "completedAt": result.to_wire()["completedAt"],
        })
        return result

    def fetch_questions(self, question_ids: List[str]) -> List[Question]:
        """
        저장소의 일괄 조회 상한(batch_limit) 단위로 나눠 조회하고 결과를 합친다.
        조회 실패는 그대로 전파한다 (재시도 없음).
        """
        limit = getattr(self.question_store, "batch_limit", config.BATCH_GET_LIMIT)
        questions: List[Question] = []
        for i in range(0, len(question_ids), limit):
            questions.extend(self.question_store.batch_get(question_ids[i:i + limit]))
        return questions

    def list_results(self, user_id: str, limit: Optional[int] = None) -> List[ExamResult]:
        return self.result_store.list_for_user(user_id, limit or config.RESULTS_PAGE_SIZE)

    def get_result(self, user_id: str, result_id: str) -> ExamResult:
        result = self.result_store.get(user_id, result_id)
        if result is None:
            raise NotFoundError("exam result not found")
        return result

    @staticmethod
    def _check_submittable(session: ExamSession) -> None:
        if session.status is ExamStatus.COMPLETED:
            raise InvalidStateError("already submitted")
        if session.status is ExamStatus.EXPIRED:
            raise InvalidStateError("session has expired")
