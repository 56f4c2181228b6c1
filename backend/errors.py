# errors.py
from __future__ import annotations


class JobFlowError(Exception):
    """Base error; carries the HTTP status the API layer reports."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class UnauthenticatedError(JobFlowError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class BadRequestError(JobFlowError):
    status_code = 400


class NotFoundError(JobFlowError):
    status_code = 404


class ExternalServiceError(JobFlowError):
    """Database, auth provider, model or GitHub failed or answered out of contract."""

    status_code = 500


class WorkspaceError(JobFlowError):
    status_code = 400


class WorkspaceFileNotFoundError(NotFoundError):
    pass


class VirtualFileNotFoundError(NotFoundError):
    pass


class SecurityRestrictionError(WorkspaceError):
    status_code = 403


class QuotaExceededError(WorkspaceError):
    status_code = 507
