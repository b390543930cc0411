from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from voicechat.api.errors import ApiError
from voicechat.api.routes_public import public_router
from voicechat.api.security import RequestSizeLimitMiddleware
from voicechat.runtime.config import load_config
from voicechat.runtime.errors import VoiceChatError
from voicechat.runtime.service import VoiceChatService
from voicechat.runtime.service import build_service as _build_service


def build_service() -> VoiceChatService:
    """Build the VoiceChatService for API runtime.

    This wrapper exists so tests can monkeypatch `voicechat.api.app.build_service`
    without reaching into runtime modules.
    """
    return _build_service()


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(_request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_json())

    @app.exception_handler(VoiceChatError)
    async def _runtime_error(_request: Request, exc: VoiceChatError) -> JSONResponse:
        err = ApiError.from_runtime(exc)
        return JSONResponse(status_code=err.status_code, content=err.to_json())

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        err = ApiError(422, "invalid_request", "request validation failed", {"errors": exc.errors()})
        return JSONResponse(status_code=422, content=jsonable_encoder(err.to_json()))


def create_app(*, service: Optional[VoiceChatService] = None, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    service:
      - explicit service: attached as-is (tests)
      - None + boot_runtime=True: built from config via build_service()
      - None + boot_runtime=False: app.state.service stays None; routes answer
        500 not_ready
    """
    cfg = service.cfg if service is not None else load_config()

    # Disable docs in production.
    if cfg.mode == "prod":
        app = FastAPI(title="VoiceChat Storage API", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="VoiceChat Storage API")

    app.state.cfg = cfg
    if service is not None:
        app.state.service = service
    elif boot_runtime:
        app.state.service = build_service()
    else:
        app.state.service = None

    app.add_middleware(RequestSizeLimitMiddleware)
    _install_error_handlers(app)
    app.include_router(public_router)
    return app
