"""
services/container.py — config 값으로 저장소/이벤트/카탈로그/서비스를 조립한다.

API 계층은 get_services()로 프로세스당 하나의 조합을 공유한다.
테스트는 ExamSessionManager / ScoringEngine을 직접 만든다.
"""

import logging
import threading
from typing import Optional

import boto3
from pydantic import BaseModel, ConfigDict

import config
from cert_exam_cbt.errors import ConfigurationError
from cert_exam_cbt.services.catalog import ExamCatalog, load_catalog
from cert_exam_cbt.services.notifier import EventBridgeNotifier, LoggingNotifier
from cert_exam_cbt.services.scoring_engine import ScoringEngine
from cert_exam_cbt.services.session_manager import ExamSessionManager
from cert_exam_cbt.storage.memory import (
    InMemoryQuestionStore,
    InMemoryResultStore,
    InMemorySessionStore,
    load_questions_file,
)

logger = logging.getLogger(__name__)


class Services(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    catalog: ExamCatalog
    question_store: object
    session_store: object
    result_store: object
    notifier: object
    session_manager: ExamSessionManager
    scoring_engine: ScoringEngine


def _build_stores(backend: str):
    if backend == "memory":
        questions = []
        seed_path = config.QUESTION_SEED_PATH
        if seed_path:
            questions = load_questions_file(seed_path)
            logger.info(f"문제 {len(questions)}개 로드: {seed_path}")
        return (
            InMemoryQuestionStore(questions, batch_limit=config.BATCH_GET_LIMIT),
            InMemorySessionStore(config.SESSION_EXPIRY_BUFFER_SECONDS),
            InMemoryResultStore(),
        )
    if backend == "dynamodb":
        from cert_exam_cbt.storage.dynamodb import (
            DynamoQuestionStore,
            DynamoResultStore,
            DynamoSessionStore,
        )

        resource = boto3.resource("dynamodb", region_name=config.AWS_REGION)
        return (
            DynamoQuestionStore(resource.Table(config.QUESTIONS_TABLE_NAME), config.BATCH_GET_LIMIT),
            DynamoSessionStore(resource.Table(config.EXAM_SESSIONS_TABLE_NAME), config.SESSION_EXPIRY_BUFFER_SECONDS),
            DynamoResultStore(resource.Table(config.RESULTS_TABLE_NAME)),
        )
    raise ConfigurationError(f"unknown storage backend: {backend}")


def build_services(backend: Optional[str] = None) -> Services:
    catalog = load_catalog(config.EXAM_CATALOG_PATH)
    question_store, session_store, result_store = _build_stores(backend or config.STORAGE_BACKEND)

    if config.EVENT_BUS_NAME:
        notifier = EventBridgeNotifier(config.EVENT_BUS_NAME, config.EVENT_SOURCE, region_name=config.AWS_REGION)
    else:
        notifier = LoggingNotifier()

    return Services(
        catalog=catalog,
        question_store=question_store,
        session_store=session_store,
        result_store=result_store,
        notifier=notifier,
        session_manager=ExamSessionManager(question_store, session_store, catalog, notifier),
        scoring_engine=ScoringEngine(question_store, session_store, result_store, catalog, notifier),
    )


_lock = threading.Lock()
_services: Optional[Services] = None


def get_services() -> Services:
    global _services
    with _lock:
        if _services is None:
            _services = build_services()
        return _services


def set_services(services: Optional[Services]) -> None:
    """미리 조립한 Services로 교체 (None이면 다음 호출 때 다시 조립)."""
    global _services
    with _lock:
        _services = services
