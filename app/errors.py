"""Error kinds raised by the league services and surfaced by the API."""


class PorraError(Exception):
    """Base class for errors surfaced to callers verbatim"""

    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    @property
    def kind(self):
        return type(self).__name__

    def to_dict(self):
        return {"error": self.kind, "message": self.message}


class InvalidInput(PorraError):
    """Rejected before any state change (bad scores, empty names, locked match)"""

    status_code = 400


class PermissionDenied(PorraError):
    status_code = 403


class NotFound(PorraError):
    """Referenced match, prediction, season or user does not exist"""

    status_code = 404


class TransactionFailure(PorraError):
    """An atomic operation could not commit; nothing was applied.

    Callers retry the whole operation, never a part of it.
    """

    status_code = 409
