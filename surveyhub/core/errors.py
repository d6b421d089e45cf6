"""
Domain errors raised by the survey core.

Routers never translate these by hand: ``main.py`` registers a single
exception handler that turns any ``SurveyHubError`` into a JSON body with the
error's ``status_code``.
"""

class SurveyHubError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def wrap(self, context: str) -> "SurveyHubError":
        """Return a copy of this error (same type) with ``context`` prefixed to the detail."""
        cls = type(self)
        # Skip __init__: subclasses may take extra required arguments
        wrapped = cls.__new__(cls)
        wrapped.__dict__.update(self.__dict__)
        wrapped.detail = f"{context}: {self.detail}"
        Exception.__init__(wrapped, wrapped.detail)
        return wrapped


class NotFoundError(SurveyHubError):
    status_code = 404


class ForbiddenError(SurveyHubError):
    status_code = 403


class AuthorizationContextError(SurveyHubError):
    status_code = 401


class ValidationError(SurveyHubError):
    status_code = 400


class TransactionError(SurveyHubError):
    """Begin, commit or rollback failed. ``operation`` names which one."""

    def __init__(self, detail: str, operation: str):
        super().__init__(detail)
        self.operation = operation


class SynchronizationError(SurveyHubError):
    """A storage call inside a synchronization step failed."""


class UpstreamServiceError(SurveyHubError):
    status_code = 502
