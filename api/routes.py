"""
api/routes.py — FastAPI 엔드포인트

프로시저 이름을 그대로 경로로 쓴다: POST /api/{fieldName}
호출자 식별은 업스트림 인증 계층이 넣어 주는 헤더(config.USER_ID_HEADER)에서 읽는다.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from cert_exam_cbt.errors import ExamEngineError, UnauthenticatedError
from cert_exam_cbt.services.container import Services, get_services
from api import procedures
from api.procedures import (
    ListResultsInput,
    ResultRefInput,
    SaveProgressInput,
    SessionRefInput,
    StartExamInput,
)

router = APIRouter()


# ── 헬퍼 ─────────────────────────────────────────────────────────────────────

def current_user(request: Request) -> str:
    user_id: Optional[str] = getattr(request.state, "user_id", None)
    if not user_id:
        e = UnauthenticatedError("user authentication required")
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    return user_id


def services_dep() -> Services:
    return get_services()


def _call(procedure, services: Services, user_id: str, body):
    try:
        return procedure(services, user_id, body)
    except ExamEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


# ── 엔드포인트 ───────────────────────────────────────────────────────────────

@router.post("/api/startExam")
def start_exam(
    body: StartExamInput,
    user_id: str = Depends(current_user),
    services: Services = Depends(services_dep),
):
    return _call(procedures.start_exam, services, user_id, body)


@router.post("/api/saveExamProgress")
def save_exam_progress(
    body: SaveProgressInput,
    user_id: str = Depends(current_user),
    services: Services = Depends(services_dep),
):
    return _call(procedures.save_exam_progress, services, user_id, body)


@router.post("/api/submitExam")
def submit_exam(
    body: SessionRefInput,
    user_id: str = Depends(current_user),
    services: Services = Depends(services_dep),
):
    return _call(procedures.submit_exam, services, user_id, body)


@router.post("/api/getExamSession")
def get_exam_session(
    body: SessionRefInput,
    user_id: str = Depends(current_user),
    services: Services = Depends(services_dep),
):
    return _call(procedures.get_exam_session, services, user_id, body)


@router.post("/api/getExamResults")
def get_exam_results(
    body: ListResultsInput,
    user_id: str = Depends(current_user),
    services: Services = Depends(services_dep),
):
    return _call(procedures.get_exam_results, services, user_id, body)


@router.post("/api/getExamResult")
def get_exam_result(
    body: ResultRefInput,
    user_id: str = Depends(current_user),
    services: Services = Depends(services_dep),
):
    return _call(procedures.get_exam_result, services, user_id, body)


@router.get("/api/certifications")
def list_certifications(services: Services = Depends(services_dep)):
    catalog = services.catalog
    return [
        {"code": code, "name": catalog.get(code).name, "domains": catalog.get(code).domain_names}
        for code in catalog
    ]
