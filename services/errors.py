"""Error taxonomy and the {success, data, error} result envelope."""

from dataclasses import dataclass
from typing import Any, Optional


class ApiError(Exception):
    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ApiError):
    status_code = 400


class UnauthorizedError(ApiError):
    status_code = 401


class NotFoundError(ApiError):
    status_code = 404


class StorageError(ApiError):
    status_code = 500


@dataclass
class Result:
    success: bool
    data: Any = None
    error: Optional[str] = None
    status: int = 200

    @classmethod
    def ok(cls, data=None, status=200):
        return cls(True, data, None, status)

    @classmethod
    def fail(cls, exc):
        return cls(False, None, exc.message, exc.status_code)

    @property
    def not_found(self):
        return not self.success and self.status == NotFoundError.status_code

    def to_dict(self):
        return {'success': self.success, 'data': self.data, 'error': self.error}
