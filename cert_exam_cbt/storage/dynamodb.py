"""
storage/dynamodb.py — DynamoDB 저장소 (boto3 resource API)

키 설계
  Questions     PK = "{certification}#{domain}"
  ExamSessions  PK = "USER#{userId}", SK = "EXAM#{sessionId}",
                GSI1PK = "{status}#{startTime}", expiresAt = TTL (epoch 초)
  ExamResults   PK = "USER#{userId}", SK = "RESULT#{completedAt}",
                GSI1PK = "{certification}#{completedAt}"

인코딩/디코딩은 이 모듈 안에서만 한다. 기존 데이터의 JSON 문자열 필드
(options, correctAnswers, answers ...)와 네이티브 리스트/맵을 모두 읽는다.
"""

import json
import logging
from decimal import Decimal
from datetime import datetime
from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError
from pydantic import ValidationError

from cert_exam_cbt.errors import ConflictError, NotFoundError
from cert_exam_cbt.models.question_model import Difficulty, Question
from cert_exam_cbt.models.result_model import ExamResult
from cert_exam_cbt.models.session_state import Answer, ExamSession, ExamStatus


_QUESTION_JSON_FIELDS = ("options", "correctAnswers", "references", "tags")
_SESSION_JSON_FIELDS = ("questions", "answers", "markedForReview")
_RESULT_JSON_FIELDS = ("domainBreakdown",)
_KEY_FIELDS = ("PK", "SK", "GSI1PK", "expiresAt")

logger = logging.getLogger(__name__)


# ── 키 ───────────────────────────────────────────────────────────────────────

def question_pk(certification: str, domain: str) -> str:
    return f"{certification}#{domain}"


def session_pk(user_id: str) -> str:
    return f"USER#{user_id}"


def session_sk(session_id: str) -> str:
    return f"EXAM#{session_id}"


def result_sk(completed_at: str) -> str:
    return f"RESULT#{completed_at}"


# ── 인코딩 ───────────────────────────────────────────────────────────────────

def _to_dynamo(value: Any) -> Any:
    """resource API는 float를 받지 않으므로 Decimal로 바꾼다."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_dynamo(v) for v in value]
    return value


def _from_dynamo(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, (list, set)):
        return [_from_dynamo(v) for v in value]
    return value


def _decode_fields(item: Dict[str, Any], fields) -> Dict[str, Any]:
    data = {k: _from_dynamo(v) for k, v in item.items() if k not in _KEY_FIELDS}
    for name in fields:
        if isinstance(data.get(name), str):
            data[name] = json.loads(data[name])
    return data


def _is_conditional_failure(e: ClientError) -> bool:
    return e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


def _paginate(call, **kwargs) -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []
    while True:
        response = call(**kwargs)
        items.extend(response.get("Items", []))
        last_key = response.get("LastEvaluatedKey")
        if not last_key:
            return items
        kwargs["ExclusiveStartKey"] = last_key


# ── 문제 ─────────────────────────────────────────────────────────────────────

class DynamoQuestionStore:
    def __init__(self, table, batch_limit: int = 100):
        self._table = table
        self.batch_limit = batch_limit

    def query(
        self,
        certification: str,
        domain: str,
        difficulty: Optional[Difficulty] = None,
    ) -> List[Question]:
        kwargs: Dict[str, Any] = {
            "KeyConditionExpression": Key("PK").eq(question_pk(certification, domain)),
        }
        if difficulty is not None:
            kwargs["FilterExpression"] = Attr("difficulty").eq(Difficulty(difficulty).value)
        return self._to_questions(_paginate(self._table.query, **kwargs))

    def batch_get(self, question_ids: List[str]) -> List[Question]:
        """
        questionId 목록으로 문제를 조회한다.
        questionId에 대한 인덱스가 없으므로 IN 필터 스캔을 사용한다.
        """
        if not question_ids:
            return []
        if len(question_ids) > self.batch_limit:
            raise ValueError(f"batch_get accepts at most {self.batch_limit} ids, got {len(question_ids)}")
        items = _paginate(
            self._table.scan,
            FilterExpression=Attr("questionId").is_in(list(question_ids)),
        )
        return self._to_questions(items)

    @staticmethod
    def _to_questions(items: List[Dict[str, Any]]) -> List[Question]:
        """읽을 수 없는 레코드는 건너뛴다 (출제 부족 또는 채점 제외로 처리됨)."""
        questions: List[Question] = []
        for item in items:
            try:
                questions.append(Question.from_stored(_decode_fields(item, _QUESTION_JSON_FIELDS)))
            except (ValidationError, json.JSONDecodeError) as e:
                logger.warning(f"문제 레코드 건너뜀 {item.get('questionId')}: {e}")
        return questions


# ── 세션 ─────────────────────────────────────────────────────────────────────

class DynamoSessionStore:
    def __init__(self, table, expiry_buffer_seconds: int = 3600):
        self._table = table
        self.expiry_buffer_seconds = expiry_buffer_seconds

    def _key(self, user_id: str, session_id: str) -> Dict[str, str]:
        return {"PK": session_pk(user_id), "SK": session_sk(session_id)}

    def get(self, user_id: str, session_id: str) -> Optional[ExamSession]:
        response = self._table.get_item(Key=self._key(user_id, session_id))
        item = response.get("Item")
        return self._to_session(item) if item else None

    def create(self, session: ExamSession) -> ExamSession:
        data = session.to_wire()
        item = {
            **self._key(session.user_id, session.session_id),
            **_to_dynamo(data),
            "expiresAt": session.expires_at(self.expiry_buffer_seconds),
            "GSI1PK": f"{session.status.value}#{data['startTime']}",
        }
        try:
            self._table.put_item(Item=item, ConditionExpression="attribute_not_exists(PK)")
        except ClientError as e:
            if _is_conditional_failure(e):
                raise ConflictError(f"exam session {session.session_id} already exists") from e
            raise
        return session

    def update_progress(
        self,
        user_id: str,
        session_id: str,
        answers: Dict[str, Answer],
        marked_for_review: List[str],
        updated_at: datetime,
    ) -> ExamSession:
        try:
            response = self._table.update_item(
                Key=self._key(user_id, session_id),
                UpdateExpression="SET answers = :answers, markedForReview = :marked, updatedAt = :updatedAt",
                ConditionExpression="attribute_exists(PK)",
                ExpressionAttributeValues={
                    ":answers": _to_dynamo({k: a.to_wire() for k, a in answers.items()}),
                    ":marked": list(dict.fromkeys(marked_for_review)),
                    ":updatedAt": updated_at.isoformat(),
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                raise NotFoundError("exam session not found") from e
            raise
        return self._to_session(response["Attributes"])

    def update_status(
        self,
        user_id: str,
        session_id: str,
        status: ExamStatus,
        end_time: datetime,
    ) -> None:
        self._table.update_item(
            Key=self._key(user_id, session_id),
            UpdateExpression="SET #status = :status, endTime = :endTime, updatedAt = :endTime",
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues={
                ":status": ExamStatus(status).value,
                ":endTime": end_time.isoformat(),
            },
        )

    @staticmethod
    def _to_session(item: Dict[str, Any]) -> ExamSession:
        return ExamSession.model_validate(_decode_fields(item, _SESSION_JSON_FIELDS))


# ── 결과 ─────────────────────────────────────────────────────────────────────

class DynamoResultStore:
    def __init__(self, table):
        self._table = table

    def create(self, result: ExamResult) -> ExamResult:
        data = result.to_wire()
        item = {
            "PK": session_pk(result.user_id),
            "SK": result_sk(data["completedAt"]),
            **_to_dynamo(data),
            "GSI1PK": f"{result.certification}#{data['completedAt']}",
        }
        try:
            self._table.put_item(Item=item, ConditionExpression="attribute_not_exists(SK)")
        except ClientError as e:
            if _is_conditional_failure(e):
                raise ConflictError(f"exam result for {data['completedAt']} already exists") from e
            raise
        return result

    def get(self, user_id: str, result_id: str) -> Optional[ExamResult]:
        items = _paginate(
            self._table.query,
            KeyConditionExpression=Key("PK").eq(session_pk(user_id)) & Key("SK").begins_with("RESULT#"),
            FilterExpression=Attr("resultId").eq(result_id),
        )
        return self._to_result(items[0]) if items else None

    def list_for_user(self, user_id: str, limit: int = 50) -> List[ExamResult]:
        response = self._table.query(
            KeyConditionExpression=Key("PK").eq(session_pk(user_id)) & Key("SK").begins_with("RESULT#"),
            ScanIndexForward=False,  # 최신순
            Limit=limit,
        )
        return [self._to_result(item) for item in response.get("Items", [])]

    @staticmethod
    def _to_result(item: Dict[str, Any]) -> ExamResult:
        return ExamResult.model_validate(_decode_fields(item, _RESULT_JSON_FIELDS))
