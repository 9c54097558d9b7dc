"""
Exception hierarchy for the resume pipeline.

Each error carries a machine-readable code and the HTTP status the API maps it
to; `details` holds the keyword context given at the raise site.
"""
import functools
import time
from random import uniform
from typing import Any, Dict

from fastapi import HTTPException
from pymongo.errors import PyMongoError


class PipelineBaseException(Exception):
    """Base exception for the pipeline"""

    error_code = "PIPELINE_ERROR"
    status_code = 500
    # keyword arguments copied into `details` when given
    detail_fields = ()

    def __init__(self, message: str, details: Dict[str, Any] = None, cause: Exception = None, **context):
        self.message = message
        self.details = dict(details or {})
        for key in self.detail_fields:
            value = context.pop(key, None)
            if value is not None:
                self.details[key] = value if isinstance(value, (str, int, float, bool)) else str(value)
        if context:
            raise TypeError(f"Unexpected context for {type(self).__name__}: {sorted(context)}")
        self.cause = cause
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class ValidationError(PipelineBaseException):
    """Caller input was rejected (missing email, malformed upload)"""
    error_code = "VALIDATION_ERROR"
    status_code = 400
    detail_fields = ("field", "invalid_value")


class ExtractionError(PipelineBaseException):
    """A source document could not be decoded into text"""
    error_code = "EXTRACTION_ERROR"
    status_code = 400
    detail_fields = ("file_name",)

    def __init__(self, message: str = "Extraction failed", **kwargs):
        super().__init__(message, **kwargs)


class NotFoundError(PipelineBaseException):
    error_code = "NOT_FOUND"
    status_code = 404
    detail_fields = ("resource", "resource_id")


class OracleError(PipelineBaseException):
    """The text-generation backend failed or replied with garbage"""
    error_code = "ORACLE_ERROR"
    status_code = 502
    detail_fields = ("model_name",)


class DeliveryError(PipelineBaseException):
    error_code = "DELIVERY_ERROR"
    status_code = 502
    detail_fields = ("sink", "recipient")


class DatabaseError(PipelineBaseException):
    error_code = "DATABASE_ERROR"
    status_code = 500
    detail_fields = ("operation", "collection")


class ConfigurationError(PipelineBaseException):
    error_code = "CONFIGURATION_ERROR"
    status_code = 400
    detail_fields = ("config_key", "config_value")


def map_to_http_exception(exc: PipelineBaseException) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail={"error": exc.to_dict(), "message": exc.message},
    )


class ExceptionContext:
    """Logs a named operation and turns driver failures inside it into DatabaseError"""

    def __init__(self, operation: str, logger=None, **context):
        self.operation = operation
        self.logger = logger
        self.context = context

    def __enter__(self):
        if self.logger:
            self.logger.debug(f"Starting operation: {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            return False

        if self.logger:
            self.logger.error(
                f"Operation failed: {self.operation} - {exc_val}",
                extra={**self.context, "exception_type": exc_type.__name__}
            )
        if isinstance(exc_val, PyMongoError):
            raise DatabaseError(
                f"Database error in {self.operation}: {exc_val}",
                operation=self.operation,
                details=dict(self.context),
                cause=exc_val
            ) from exc_val
        return False


def retry_with_logging(
    max_attempts: int = 3,
    backoff_factor: float = 1.0,
    exceptions: tuple = (Exception,),
    logger=None
):
    """Retry a blocking call with jittered exponential backoff, logging each failure"""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if logger:
                        logger.warning(f"Attempt {attempt}/{max_attempts} failed for {func.__name__}: {e}")
                    if attempt == max_attempts:
                        raise
                    time.sleep(backoff_factor * (2 ** (attempt - 1)) + uniform(0, 1))

        return wrapper

    return decorator
