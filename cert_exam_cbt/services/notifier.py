"""
services/notifier.py

시험 이벤트(ExamStarted / ExamExpired / ExamCompleted) 발행.

발행은 fire-and-forget: 실패해도 시험 흐름을 중단하지 않는다.
publish_safely()가 예외를 잡아 로그만 남긴다.
"""

import json
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

import boto3

logger = logging.getLogger(__name__)

EXAM_STARTED = "ExamStarted"
EXAM_EXPIRED = "ExamExpired"
EXAM_COMPLETED = "ExamCompleted"


class EventBridgeNotifier:
    """EventBridge 이벤트 버스로 발행."""

    def __init__(self, event_bus_name: str, source: str, client=None, region_name: Optional[str] = None):
        self.event_bus_name = event_bus_name
        self.source = source
        self._client = client or boto3.client("events", region_name=region_name)

    def publish(self, detail_type: str, detail: Dict[str, Any]) -> None:
        response = self._client.put_events(
            Entries=[{
                "Source": self.source,
                "DetailType": detail_type,
                "Detail": json.dumps(detail, default=str),
                "EventBusName": self.event_bus_name,
            }]
        )
        # put_events는 항목 단위 실패를 예외 대신 카운트로 돌려준다
        if response.get("FailedEntryCount"):
            raise RuntimeError(f"EventBridge rejected {detail_type}: {response.get('Entries')}")


class LoggingNotifier:
    """이벤트 버스가 설정되지 않은 환경용. 로그로만 남긴다."""

    def publish(self, detail_type: str, detail: Dict[str, Any]) -> None:
        logger.info(f"이벤트 {detail_type}: {json.dumps(detail, default=str)}")


class RecordingNotifier:
    """발행된 이벤트를 메모리에 쌓아 둔다 (로컬 실행/테스트용)."""

    def __init__(self):
        self._lock = threading.Lock()
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def publish(self, detail_type: str, detail: Dict[str, Any]) -> None:
        with self._lock:
            self.events.append((detail_type, dict(detail)))

    def of_type(self, detail_type: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [d for t, d in self.events if t == detail_type]


def publish_safely(notifier, detail_type: str, detail: Dict[str, Any]) -> bool:
    """
    이벤트를 발행하고 성공 여부를 반환한다. 어떤 예외도 밖으로 내보내지 않는다.
    재시도하지 않는다.
    """
    if notifier is None:
        return False
    try:
        notifier.publish(detail_type, detail)
        return True
    except Exception as e:
        logger.error(f"이벤트 발행 실패 ({detail_type}): {e}")
        return False
