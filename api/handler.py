"""
api/handler.py — 서버리스(리졸버) 진입점

이벤트 형식: {"fieldName": "...", "arguments": {...}, "identity": {"sub": "..."}}
오류는 예외로 전파한다 (리졸버가 GraphQL 오류로 변환).
"""

import json
import logging

from cert_exam_cbt.errors import ExamEngineError
from cert_exam_cbt.services.container import get_services
from api.procedures import dispatch

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def caller_identity(event: dict):
    identity = event.get("identity") or {}
    return identity.get("sub") or identity.get("username")


def handler(event, context=None, services=None):
    logger.info(f"Event: {json.dumps(event, default=str)}")
    field_name = event.get("fieldName", "")
    try:
        return dispatch(
            services or get_services(),
            field_name,
            event.get("arguments") or {},
            caller_identity(event),
        )
    except ExamEngineError as e:
        logger.error(f"{field_name} 실패 [{e.code}]: {e.message}")
        raise
