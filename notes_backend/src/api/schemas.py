import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serializes fields as camelCase (``accessToken``) while accepting snake_case too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ==== Auth ====

# PUBLIC_INTERFACE
class SignUpRequest(BaseModel):
    """Schema for user creation (signup) input."""
    email: str
    password: str
    name: str = ""
    lastname: str = ""


# PUBLIC_INTERFACE
class SignInRequest(BaseModel):
    email: str
    password: str


class StoredUser(BaseModel):
    """Credential fields of a stored user, as read by the repository."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    password_hash: str
    salt: str


# PUBLIC_INTERFACE
class Token(CamelModel):
    """Returned when signing up or in successfully."""
    access_token: str


# ==== Notes ====

# PUBLIC_INTERFACE
class NoteCreate(BaseModel):
    """Input schema for creating a note. Blank titles are rejected by the service."""
    title: str = ""
    description: str = ""


# PUBLIC_INTERFACE
class NoteRead(CamelModel):
    """Returned data for a note."""
    id: str
    title: str
    description: str
    timestamp: datetime.datetime
    finished: bool


# PUBLIC_INTERFACE
class UpdateFinishedNote(BaseModel):
    id: str = ""
    finished: bool


# PUBLIC_INTERFACE
class DeleteNote(BaseModel):
    id: str = ""


# PUBLIC_INTERFACE
class NotePage(BaseModel):
    """One window of a user's notes as read by the repository."""
    notes: List[NoteRead]
    has_previous: bool
    has_next: bool


# PUBLIC_INTERFACE
class PaginatedNotes(CamelModel):
    notes: List[NoteRead]
    previous: Optional[int] = None
    next: Optional[int] = None

    @classmethod
    def from_page(cls, page: NotePage, number: int) -> "PaginatedNotes":
        """Turn repository flags into previous/next page markers."""
        return cls(
            notes=page.notes,
            previous=number - 1 if page.has_previous else None,
            next=number + 1 if page.has_next else None,
        )


# PUBLIC_INTERFACE
class PaginatedNotesResponse(CamelModel):
    paginated_notes: PaginatedNotes


# PUBLIC_INTERFACE
class ErrorResponse(BaseModel):
    """Body of every REST error response."""
    message: str
    name: str = Field(..., examples=["NoteNotFoundError"])
