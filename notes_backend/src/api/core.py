import logging
from functools import lru_cache
from typing import Optional, Union

from email_validator import EmailNotValidError, validate_email

from src.api.schemas import NoteRead, PaginatedNotes
from src.api.security import (
    HashProvider,
    Pbkdf2HashProvider,
    SessionValidator,
    create_access_token,
    generate_salt,
    verify_password,
)
from src.db.repository import NoteRepository, UserRepository
from src.errors import InvalidCredentialsError, InvalidParamError

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 0
DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100
# OFFSET/LIMIT are signed 64-bit in SQLite and PostgreSQL
MAX_OFFSET = 2 ** 63 - 1
MIN_PASSWORD_LENGTH = 6


def _require_text(value: Optional[str], param: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidParamError(param)
    return value


def _to_int(value: Union[int, str, None], param: str, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise InvalidParamError(param)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise InvalidParamError(param) from exc


# PUBLIC_INTERFACE
class NoteLifecycleService:
    """
    The five note use cases, each gated on a valid session.

    The token is checked before anything else, so an invalid or expired
    token never reaches the repository. Domain errors from the validator
    and the repository are passed through unchanged; both transports map
    them with the same table in ``src.errors``.
    """

    def __init__(self, validator: SessionValidator, notes: NoteRepository):
        self.validator = validator
        self.notes = notes

    # PUBLIC_INTERFACE
    def create_note(self, authorization: Optional[str], title: str, description: str = "") -> NoteRead:
        """Create an unfinished note owned by the caller."""
        user_id = self.validator.validate(authorization)
        _require_text(title, "title")
        return self.notes.insert(user_id, title, description or "")

    # PUBLIC_INTERFACE
    def find_notes(self, authorization: Optional[str], page: Union[int, str, None], limit: Union[int, str, None]) -> PaginatedNotes:
        """One page of the caller's notes, oldest first. ``page``/``limit`` may arrive as header strings."""
        user_id = self.validator.validate(authorization)
        page = _to_int(page, "page", DEFAULT_PAGE)
        limit = _to_int(limit, "limit", DEFAULT_PAGE_LIMIT)
        if page < 0:
            raise InvalidParamError("page")
        if not 1 <= limit <= MAX_PAGE_LIMIT:
            raise InvalidParamError("limit")
        if (page + 1) * limit >= MAX_OFFSET:
            # beyond any offset the store accepts, so past the end of the data
            return PaginatedNotes(notes=[], previous=page - 1 if page > 0 else None, next=None)
        return PaginatedNotes.from_page(self.notes.find_page(user_id, page, limit), page)

    # PUBLIC_INTERFACE
    def find_note(self, authorization: Optional[str], note_id: str) -> NoteRead:
        user_id = self.validator.validate(authorization)
        return self.notes.find_by_id(user_id, _require_text(note_id, "id"))

    # PUBLIC_INTERFACE
    def update_finished_note(self, authorization: Optional[str], note_id: str, finished: bool) -> NoteRead:
        user_id = self.validator.validate(authorization)
        _require_text(note_id, "id")
        if not isinstance(finished, bool):
            raise InvalidParamError("finished")
        return self.notes.set_finished(user_id, note_id, finished)

    # PUBLIC_INTERFACE
    def delete_note(self, authorization: Optional[str], note_id: str) -> None:
        """Delete a note; only finished notes may be deleted."""
        user_id = self.validator.validate(authorization)
        self.notes.delete(user_id, _require_text(note_id, "id"))


# PUBLIC_INTERFACE
class AuthService:
    """Sign-up and sign-in. Both return a fresh access token."""

    def __init__(self, users: UserRepository, hash_provider: HashProvider):
        self.users = users
        self.hash_provider = hash_provider

    def sign_up(self, email: str, password: str, name: str, lastname: str) -> str:
        try:
            email = validate_email(_require_text(email, "email"), check_deliverability=False).normalized
        except EmailNotValidError as exc:
            raise InvalidParamError("email") from exc
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidParamError("password")
        _require_text(name, "name")
        _require_text(lastname, "lastname")

        salt = generate_salt()
        user_id = self.users.insert(
            email=email,
            password_hash=self.hash_provider.encode(password, salt),
            salt=salt,
            name=name.strip(),
            lastname=lastname.strip(),
        )
        return create_access_token(user_id)

    def sign_in(self, email: str, password: str) -> str:
        user = self.users.find_by_email(email or "")
        if user is None or not verify_password(self.hash_provider, password or "", user.salt, user.password_hash):
            logger.debug("Failed sign-in attempt")
            raise InvalidCredentialsError()
        return create_access_token(user.id)


# ==== Dependency providers (used by both transports) ====

# PUBLIC_INTERFACE
@lru_cache()
def get_note_service() -> NoteLifecycleService:
    """Shared NoteLifecycleService bound to the process-wide pool."""
    return NoteLifecycleService(SessionValidator(), NoteRepository())


# PUBLIC_INTERFACE
@lru_cache()
def get_auth_service() -> AuthService:
    return AuthService(UserRepository(), Pbkdf2HashProvider())
