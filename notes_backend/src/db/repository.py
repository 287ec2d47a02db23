import logging
from typing import Callable, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.orm import Session

from src.api.schemas import NotePage, NoteRead, StoredUser
from src.db.db import DatabaseTransaction, transaction
from src.db.models import Note, User
from src.errors import EmailInUseError, NoteNotFoundError, UnfinishedNoteError

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


# PUBLIC_INTERFACE
class NoteRepository:
    """
    Notes of one owner, read and written inside one transaction per call.

    Every lookup filters on both the note id and the owning user id, so a
    note that belongs to someone else is indistinguishable from a missing one.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory

    def _transaction(self):
        return transaction(self._session_factory)

    @staticmethod
    def _find_owned(tx: DatabaseTransaction, user_id: str, note_id: str, for_update: bool = False) -> Note:
        stmt = select(Note).where(Note.id == note_id, Note.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update()
        notes = tx.query_scalars(stmt)
        if not notes:
            raise NoteNotFoundError(note_id)
        return notes[0]

    def insert(self, user_id: str, title: str, description: str) -> NoteRead:
        """Create an unfinished note for the user."""
        with self._transaction() as tx:
            notes = tx.query_scalars(
                insert(Note)
                .values(user_id=user_id, title=title, description=description, finished=False)
                .returning(Note)
            )
            note = NoteRead.model_validate(notes[0])
        logger.info("Note %s created for user %s", note.id, user_id)
        return note

    def find_page(self, user_id: str, page: int, limit: int) -> NotePage:
        """Window of ``limit`` notes starting at ``page * limit``, oldest first."""
        with self._transaction() as tx:
            notes = tx.query_scalars(
                select(Note)
                .where(Note.user_id == user_id)
                .order_by(Note.timestamp, Note.id)
                .offset(page * limit)
                .limit(limit + 1)
            )
            window = [NoteRead.model_validate(note) for note in notes[:limit]]
        return NotePage(notes=window, has_previous=page > 0, has_next=len(notes) > limit)

    def find_by_id(self, user_id: str, note_id: str) -> NoteRead:
        with self._transaction() as tx:
            return NoteRead.model_validate(self._find_owned(tx, user_id, note_id))

    def set_finished(self, user_id: str, note_id: str, finished: bool) -> NoteRead:
        """Set the finished flag unconditionally and return the updated note."""
        with self._transaction() as tx:
            notes = tx.query_scalars(
                update(Note)
                .where(Note.id == note_id, Note.user_id == user_id)
                .values(finished=finished)
                .returning(Note)
                .execution_options(synchronize_session="fetch")
            )
            if not notes:
                raise NoteNotFoundError(note_id)
            return NoteRead.model_validate(notes[0])

    def delete(self, user_id: str, note_id: str) -> None:
        """
        Delete a finished note.

        The note is re-read under a row lock and the delete itself is
        conditional on ``finished``, so a concurrent un-finish between the
        check and the delete still fails with UnfinishedNoteError.
        """
        with self._transaction() as tx:
            note = self._find_owned(tx, user_id, note_id, for_update=True)
            if not note.finished:
                raise UnfinishedNoteError(note_id)
            deleted = tx.query_scalars(
                delete(Note)
                .where(Note.id == note_id, Note.user_id == user_id, Note.finished.is_(True))
                .returning(Note.id)
                .execution_options(synchronize_session=False)
            )
            if not deleted:
                current = tx.query_scalars(
                    select(Note.finished).where(Note.id == note_id, Note.user_id == user_id)
                )
                if not current:
                    raise NoteNotFoundError(note_id)
                raise UnfinishedNoteError(note_id)
        logger.info("Note %s deleted for user %s", note_id, user_id)


# PUBLIC_INTERFACE
class UserRepository:
    """Users, looked up by normalised email."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory

    def insert(self, email: str, password_hash: str, salt: str, name: str, lastname: str) -> str:
        """Store a new user and return its id. Raises EmailInUseError for a taken email."""
        email = normalize_email(email)
        with transaction(self._session_factory) as tx:
            if tx.query_scalars(select(User.id).where(User.email == email)):
                raise EmailInUseError(email)
            ids = tx.query_scalars(
                insert(User)
                .values(email=email, password_hash=password_hash, salt=salt, name=name, lastname=lastname)
                .returning(User.id)
            )
        logger.info("User %s signed up", ids[0])
        return ids[0]

    def find_by_email(self, email: str) -> Optional[StoredUser]:
        with transaction(self._session_factory) as tx:
            users = tx.query_scalars(select(User).where(User.email == normalize_email(email)))
            return StoredUser.model_validate(users[0]) if users else None
