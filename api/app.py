"""
api/app.py — FastAPI 앱 인스턴스 + 호출자 식별 미들웨어 + 인메모리 저장소 정리 루프
"""

import logging
import threading
import time
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

import config
from cert_exam_cbt.services.container import Services, get_services, set_services
from api.routes import router

logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None, sweep: bool = True) -> FastAPI:
    if services is not None:
        set_services(services)

    app = FastAPI(title="Certification Exam Engine", docs_url=None, redoc_url=None)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 식별 미들웨어: 인증은 외부 ID 제공자가 담당하고, 여기서는 헤더만 읽는다
    @app.middleware("http")
    async def identity_middleware(request: Request, call_next):
        user_id = request.headers.get(config.USER_ID_HEADER, "").strip()
        request.state.user_id = user_id or None
        response: Response = await call_next(request)
        return response

    app.include_router(router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "storage": config.STORAGE_BACKEND}

    # 만료 힌트가 지난 세션 주기적 정리 (DynamoDB는 테이블 TTL이 담당)
    session_store = get_services().session_store
    if sweep and hasattr(session_store, "cleanup_expired"):
        def _cleanup_loop():
            while True:
                time.sleep(config.STORE_SWEEP_INTERVAL)
                removed = session_store.cleanup_expired()
                if removed:
                    logger.info(f"만료 세션 {removed}개 정리")

        t = threading.Thread(target=_cleanup_loop, daemon=True)
        t.start()

    return app
