"""Domain errors for lexassist.

Boundary errors (validation, authorization, lookup) are mapped to HTTP
responses in main.py. Generation errors never leave the generators except as
GenerationUnavailableError, which the orchestrator turns into a failed run.
"""


class LexAssistError(Exception):
    """Base class for all service errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(LexAssistError):
    """Rejected input at the service boundary."""

    status_code = 400


class UnauthorizedError(LexAssistError):
    """No usable caller identity."""

    status_code = 401


class ForbiddenError(LexAssistError):
    """Caller does not own the requested resource."""

    status_code = 403


class NotFoundError(LexAssistError):
    """Requested resource does not exist."""

    status_code = 404


class InvalidStatusTransitionError(LexAssistError):
    """A document status change would violate the lifecycle."""

    status_code = 409


class GenerationError(LexAssistError):
    """An AI strategy could not produce a usable result."""

    status_code = 502


class MalformedResponseError(GenerationError):
    """The model answered, but not with the JSON shape that was requested."""


class GenerationUnavailableError(GenerationError):
    """Neither the AI strategy nor the fallback strategy produced a result."""

    status_code = 503
