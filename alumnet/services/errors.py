from __future__ import annotations


class WorkflowError(Exception):
    """Base for failures that map onto a client-facing {"error": message} body."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(WorkflowError): ...


# no record and wrong code share this type so callers can't probe which one happened
class InvalidCode(WorkflowError): ...


class Expired(WorkflowError): ...


class RateLimited(WorkflowError):
    status_code = 429


class NotFound(WorkflowError):
    status_code = 404


class Conflict(WorkflowError):
    status_code = 409


class InternalError(WorkflowError):
    status_code = 500
