from typing import Optional, Dict, Any, List
from fastapi import HTTPException, status
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """표준 에러 응답 모델"""
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
    status_code: int


class ValidationError(BaseModel):
    """검증 에러 세부사항"""
    field: str
    message: str
    value: Optional[Any] = None


# =============================================================================
# 커스텀 예외 클래스들
# =============================================================================

class BaseCustomException(HTTPException):
    """기본 커스텀 예외 클래스"""
    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error = error
        self.message = message
        self.details = details
        self.status_code = status_code  # status_code를 먼저 설정
        super().__init__(status_code=status_code, detail=self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        """예외를 딕셔너리로 변환"""
        return {
            "error": self.error,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code
        }


class ValidationException(BaseCustomException):
    """입력 검증 실패 예외 (영속화 이전에 거부)"""
    def __init__(
        self,
        message: str = "Validation failed",
        validation_errors: Optional[List[ValidationError]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.validation_errors = validation_errors or []
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="validation_error",
            message=message,
            details=details
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "message": self.message,
            "details": self.details,
            "validation_errors": [error.model_dump() for error in self.validation_errors],
            "status_code": self.status_code
        }


class ResourceNotFoundException(BaseCustomException):
    """리소스를 찾을 수 없음 예외"""
    def __init__(
        self,
        resource: str = "Resource",
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if message is None:
            message = f"{resource} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error="resource_not_found",
            message=message,
            details=details or {"resource": resource}
        )


class PersistenceException(BaseCustomException):
    """메시지 저장소 장애 예외 (재시도 가능)"""
    def __init__(
        self,
        operation: str,
        message: str = "Message storage is unavailable, please retry",
        details: Optional[Dict[str, Any]] = None
    ):
        self.operation = operation
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="persistence_error",
            message=message,
            details=details or {"operation": operation}
        )


class ObjectStoreException(BaseCustomException):
    """파일 저장소 에러 예외"""
    def __init__(
        self,
        operation: str,
        message: str = "File storage error",
        details: Optional[Dict[str, Any]] = None
    ):
        self.operation = operation
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            error="object_store_error",
            message=f"{operation}: {message}",
            details=details or {"operation": operation}
        )


class InvalidDeletionTokenException(ObjectStoreException):
    """서명 검증에 실패한 파일 삭제 토큰 (재시도해도 성공하지 않음)"""
    def __init__(self, operation: str = "delete"):
        super().__init__(operation, "Invalid file deletion token")


# =============================================================================
# 에러 헬퍼 함수들
# =============================================================================

def create_error_response(
    error: str,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None
) -> ErrorResponse:
    """표준 에러 응답 생성"""
    return ErrorResponse(
        error=error,
        message=message,
        status_code=status_code,
        details=details
    )


def field_validation_error(field: str, message: str, value: Any = None) -> ValidationException:
    """단일 필드 검증 실패 에러"""
    return ValidationException(
        f"{field}: {message}",
        validation_errors=[ValidationError(field=field, message=message, value=value)]
    )


def message_not_found_error(message_id: Optional[str] = None) -> ResourceNotFoundException:
    """메시지를 찾을 수 없음 에러"""
    details = {"message_id": message_id} if message_id else None
    return ResourceNotFoundException("Message", details=details)
