"""
Error handling for the HTTP layer.

Every error leaves the API as
``{"success": false, "error_code", "message", "error", "details"}``;
station clients show ``message`` to the operator as-is.
"""

import logging
import traceback
from typing import Dict, Any, Optional
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from .exceptions import BaseApplicationError, NotFoundError
from .database import db_manager

logger = logging.getLogger(__name__)


class ErrorResponse:
    def __init__(self, error_code: str, message: str,
                 details: Optional[Dict[str, Any]] = None,
                 http_status: int = 400):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error_code": self.error_code,
            "message": self.message,
            "error": self.message,
            "details": self.details
        }

    def to_json_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.http_status, content=self.to_dict())


class ErrorHandler:
    """Maps exceptions to error responses."""

    ERROR_CODE_STATUS_MAP = {
        "VALIDATION_ERROR": 400,
        "AUTHENTICATION_REQUIRED": 401,
        "PERMISSION_DENIED": 403,
        "RESOURCE_NOT_FOUND": 404,
        "DUPLICATE_RESOURCE": 409,
        "BUSINESS_RULE_VIOLATION": 422,
        "PERSISTENCE_ERROR": 500,
        "CONSTRAINT_VIOLATION": 500,
        "INTERNAL_ERROR": 500,

        # redemption
        "EMPLOYEE_NOT_FOUND": 404,
        "MEAL_TYPE_NOT_FOUND": 404,
        "MEAL_CATEGORY_NOT_FOUND": 404,
        "MEAL_ITEM_NOT_FOUND": 404,
        "MEAL_RECORD_NOT_FOUND": 404,
        "ALREADY_REDEEMED": 409,
        "LIMIT_EXCEEDED": 409,
        "INSUFFICIENT_AVAILABILITY": 409,

        "COUPON_NOT_FOUND": 404,
        "USER_NOT_FOUND": 404,
    }

    @classmethod
    def handle_application_error(cls, error: BaseApplicationError) -> ErrorResponse:
        http_status = cls.ERROR_CODE_STATUS_MAP.get(error.error_code)
        if http_status is None:
            http_status = 404 if isinstance(error, NotFoundError) else 400
        return ErrorResponse(
            error_code=error.error_code,
            message=error.message,
            details=error.details,
            http_status=http_status
        )

    @classmethod
    def handle_http_exception(cls, error: StarletteHTTPException) -> ErrorResponse:
        return ErrorResponse(
            error_code="HTTP_ERROR",
            message=str(error.detail),
            details={"status_code": error.status_code},
            http_status=error.status_code
        )

    @classmethod
    def handle_validation_error(cls, error: RequestValidationError) -> ErrorResponse:
        errors = error.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = first.get("msg", "Request validation failed")
        if location:
            message = f"{location}: {message}"
        return ErrorResponse(
            error_code="VALIDATION_ERROR",
            message=message,
            details={"validation_errors": [
                {"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg")} for e in errors
            ]},
            http_status=422
        )

    @classmethod
    def handle_unknown_error(cls, error: Exception) -> ErrorResponse:
        error_details = {
            "type": type(error).__name__,
            "message": str(error),
            "traceback": traceback.format_exc()
        }
        logger.error("Unhandled error: %s", error, exc_info=error)
        cls._log_system_error(error_details)

        return ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="Internal server error",
            details={"error_type": type(error).__name__},
            http_status=500
        )

    @classmethod
    def _log_system_error(cls, error_details: Dict[str, Any]):
        """Keep a copy of the failure in the audit log when the database is reachable."""
        try:
            with db_manager.transaction() as conn:
                db_manager.log_action(conn, "system_error", error_details)
        except BaseApplicationError as e:
            logger.error("Failed to write system_error log: %s", e.message)


async def application_error_handler(request: Request, exc: BaseApplicationError) -> JSONResponse:
    if exc.error_code in ("PERSISTENCE_ERROR", "CONSTRAINT_VIOLATION"):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected: %s (%s)", request.method, request.url.path,
                    exc.message, exc.error_code)
    return ErrorHandler.handle_application_error(exc).to_json_response()


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return ErrorHandler.handle_http_exception(exc).to_json_response()


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return ErrorHandler.handle_validation_error(exc).to_json_response()


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return ErrorHandler.handle_unknown_error(exc).to_json_response()

