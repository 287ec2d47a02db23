"""Canonical error taxonomy shared by the REST and GraphQL transports.

Every domain failure is one of the classes below. Each carries a stable
``name`` and a human-readable ``message``; both transports render the same
``{"message", "name"}`` pair and look the HTTP status up in
``ERROR_STATUS`` rather than deriving it themselves.
"""
from typing import Dict, Type


# PUBLIC_INTERFACE
class NotesError(Exception):
    """Base class for domain errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, str]:
        """Payload rendered identically by every transport."""
        return {"message": self.message, "name": self.name}


# PUBLIC_INTERFACE
class NoteNotFoundError(NotesError):
    """No note with this id is owned by the caller."""

    def __init__(self, note_id: str):
        self.note_id = note_id
        super().__init__(f"Note with id {note_id} was not found")


# PUBLIC_INTERFACE
class UnfinishedNoteError(NotesError):
    """Delete attempted on a note that is not finished."""

    def __init__(self, note_id: str):
        self.note_id = note_id
        super().__init__(f"Note with id {note_id} must be finished before it can be deleted")


# PUBLIC_INTERFACE
class InvalidParamError(NotesError):
    def __init__(self, param: str):
        self.param = param
        super().__init__(f"Invalid param: {param}")


# PUBLIC_INTERFACE
class EmailInUseError(NotesError):
    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email {email} is already in use")


# PUBLIC_INTERFACE
class InvalidCredentialsError(NotesError):
    def __init__(self):
        super().__init__("Invalid email or password")


# PUBLIC_INTERFACE
class InvalidTokenError(NotesError):
    """Token missing, malformed, or signature could not be verified."""

    def __init__(self):
        super().__init__("Invalid token")


# PUBLIC_INTERFACE
class TokenExpiredError(NotesError):
    """Token verified but its expiry instant has passed."""

    def __init__(self):
        super().__init__("Token expired")


ERROR_STATUS: Dict[Type[NotesError], int] = {
    NoteNotFoundError: 400,
    UnfinishedNoteError: 400,
    InvalidParamError: 400,
    EmailInUseError: 400,
    InvalidCredentialsError: 401,
    InvalidTokenError: 401,
    TokenExpiredError: 401,
}

INTERNAL_ERROR = {"message": "Internal server error", "name": "InternalServerError"}


# PUBLIC_INTERFACE
def error_status(error: NotesError) -> int:
    """HTTP status for a domain error; unknown subclasses fall back to 400."""
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 400
