"""
Error kinds raised by the account, grading and generation services.

Each carries the HTTP status it maps to. Errors with ``expose = False`` are
logged and answered with a generic message so infrastructure details never
reach the client. Persistence failures are pymongo's own ``PyMongoError``.
"""
from typing import Optional


class QuizManiaError(Exception):
    status_code = 500
    expose = True

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(QuizManiaError):
    status_code = 404


class ConflictError(QuizManiaError):
    status_code = 409


class UnauthorizedError(QuizManiaError):
    status_code = 401

    def __init__(self, message: str, remaining_attempts: Optional[int] = None):
        super().__init__(message)
        self.remaining_attempts = remaining_attempts


class ForbiddenError(QuizManiaError):
    status_code = 403


class ExpiredError(QuizManiaError):
    status_code = 400


class GenerationFormatError(QuizManiaError):
    status_code = 502


class GenerationServiceError(QuizManiaError):
    status_code = 502
    expose = False


class DeliveryError(QuizManiaError):
    status_code = 502
    expose = False
