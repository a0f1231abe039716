"""
errors.py

시험 엔진 전 계층에서 사용하는 예외 분류.
각 예외는 code(리졸버 응답용)와 status_code(HTTP 라우트용)를 가진다.
"""


class ExamEngineError(Exception):
    code = "InternalError"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {"errorType": self.code, "message": self.message}


class UnauthenticatedError(ExamEngineError):
    """호출자 식별 정보가 없음."""
    code = "Unauthenticated"
    status_code = 401


class InvalidInputError(ExamEngineError):
    """필수 인자 누락/형식 오류, 지원하지 않는 자격증 코드 등."""
    code = "InvalidInput"
    status_code = 400


class NotFoundError(ExamEngineError):
    code = "NotFound"
    status_code = 404


class ConflictError(ExamEngineError):
    """동일 식별자의 세션이 이미 존재함 (조건부 쓰기 실패)."""
    code = "ConflictError"
    status_code = 409


class InvalidStateError(ExamEngineError):
    """세션 상태가 요청된 작업과 맞지 않음."""
    code = "InvalidState"
    status_code = 409


class ExpiredError(InvalidStateError):
    """
    제한 시간 초과.
    이 예외가 발생한 시점에는 세션이 이미 EXPIRED로 기록되어 있다.
    """
    code = "Expired"
    status_code = 410


class ConfigurationError(ExamEngineError):
    """카탈로그/채점 설정 누락. 배포·데이터 오류이므로 재시도 대상이 아님."""
    code = "ConfigurationError"
    status_code = 500
