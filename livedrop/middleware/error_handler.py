import traceback
from typing import Callable
from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from pymongo.errors import PyMongoError

from livedrop.core.errors import (
    BaseCustomException,
    ValidationException,
    ValidationError,
    create_error_response,
)
from livedrop.core.config import settings
from livedrop.core.logging import get_logger

logger = get_logger(__name__)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    통합 에러 처리 미들웨어

    라우트 밖으로 새어 나온 예외를 표준화된 에러 응답으로 변환합니다.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            response = await call_next(request)
            return response

        except BaseCustomException as e:
            return JSONResponse(
                status_code=e.status_code,
                content=e.to_dict()
            )

        except PyMongoError as e:
            # 게이트웨이를 거치지 않은 MongoDB 에러
            logger.error(f"MongoDB error: {type(e).__name__}: {e}", exc_info=True)

            error_response = create_error_response(
                "persistence_error",
                "Message storage is unavailable, please retry",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                {"detail": str(e)} if settings.debug else None
            )
            return JSONResponse(
                status_code=error_response.status_code,
                content=error_response.model_dump()
            )

        except Exception as e:
            # 예상하지 못한 모든 에러들
            logger.error(f"Unhandled exception: {type(e).__name__}: {e}", exc_info=True)

            error_detail = None
            if settings.debug:
                error_detail = {
                    "exception": str(e),
                    "type": type(e).__name__,
                    "traceback": traceback.format_exc()
                }

            error_response = create_error_response(
                "internal_server_error",
                "An unexpected error occurred",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                error_detail
            )
            return JSONResponse(
                status_code=error_response.status_code,
                content=error_response.model_dump()
            )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """HTTPException을 표준 형식으로 변환"""

    # 우리의 커스텀 예외인 경우 그대로 반환
    if isinstance(exc, BaseCustomException):
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict()
        )

    # 일반 HTTPException인 경우 표준 형식으로 변환
    error_response = create_error_response(
        "http_error",
        exc.detail if isinstance(exc.detail, str) else "HTTP error occurred",
        exc.status_code,
        {"detail": exc.detail} if not isinstance(exc.detail, str) else None
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump()
    )


async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """요청 본문 검증 에러를 400 표준 형식으로 변환"""
    validation_errors = []

    for error in exc.errors():
        field_name = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        validation_errors.append(
            ValidationError(
                field=field_name or "body",
                message=error["msg"],
                value=error.get("input") if isinstance(error.get("input"), (str, int, float, bool)) else None
            )
        )

    error = ValidationException("Request validation failed", validation_errors=validation_errors)
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_dict()
    )


def register_exception_handlers(app):
    """FastAPI 예외 핸들러 등록"""
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
