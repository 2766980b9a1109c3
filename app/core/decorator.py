from functools import wraps

from sqlalchemy.exc import IntegrityError, SQLAlchemyError


class AppException(Exception):
    """Base error raised by services; rendered as ``{"success": false, ...}``."""

    error_type = "application_error"

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class DBException(AppException):
    error_type = "database_error"


class ValidationFailed(AppException):
    error_type = "validation_error"

    def __init__(self, message: str):
        super().__init__(message, 400)


class NotFoundError(AppException):
    error_type = "not_found"

    def __init__(self, message: str):
        super().__init__(message, 404)


class ConflictError(AppException):
    error_type = "consistency_error"

    def __init__(self, message: str):
        super().__init__(message, 409)


class PermissionDenied(AppException):
    error_type = "permission_denied"

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, 403)


class FeatureDisabled(AppException):
    error_type = "feature_disabled"

    def __init__(self, message: str):
        super().__init__(message, 503)


def db_exception(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except IntegrityError:
            # mostly duplicate keys
            raise DBException("Duplicate entry: already exists", 409)
        except SQLAlchemyError:
            raise DBException("Database error occurred", 500)

    return wrapper
