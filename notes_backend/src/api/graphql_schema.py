"""GraphQL transport: a Strawberry schema served at ``/graphql`` by FastAPI.

Resolvers only call the shared services. Domain errors are rendered with
the same ``{message, name}`` pair as the REST error body, carried in each
error's ``extensions``, and the HTTP status is the one REST would use.
"""
import datetime
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import strawberry
from fastapi import Depends, Request, Response
from graphql import GraphQLError
from starlette.concurrency import run_in_threadpool
from strawberry.fastapi import GraphQLRouter
from strawberry.http import GraphQLHTTPResponse
from strawberry.types import ExecutionResult, Info

from src.api.core import AuthService, NoteLifecycleService, get_auth_service, get_note_service
from src.api.schemas import NoteRead
from src.db.db import QueryError
from src.errors import INTERNAL_ERROR, NotesError, error_status

logger = logging.getLogger(__name__)


@strawberry.type(name="Note")
class NoteType:
    id: str
    title: str
    description: str
    timestamp: datetime.datetime
    finished: bool

    @classmethod
    def from_read(cls, note: NoteRead) -> "NoteType":
        return cls(
            id=note.id,
            title=note.title,
            description=note.description,
            timestamp=note.timestamp,
            finished=note.finished,
        )


@strawberry.type(name="PaginatedNotes")
class PaginatedNotesType:
    notes: List[NoteType]
    previous: Optional[int]
    next: Optional[int]


@strawberry.type
class NotesPage:
    paginated_notes: PaginatedNotesType


@strawberry.type
class AuthPayload:
    access_token: str


@strawberry.input
class SignUpInput:
    email: str
    password: str
    name: str
    lastname: str


@strawberry.input
class SignInInput:
    email: str
    password: str


@strawberry.input
class CreateNoteInput:
    title: str
    description: str = ""


@strawberry.input
class PaginationInput:
    page: int = 0
    limit: int = 10


@strawberry.input
class NoteIdInput:
    id: str


@strawberry.input
class UpdateFinishedNoteInput:
    id: str
    finished: bool


def _authorization(info: Info) -> Optional[str]:
    return info.context["request"].headers.get("authorization")


def _set_status(info: Info, status: int) -> None:
    response: Response = info.context["response"]
    if response.status_code is None or status > response.status_code:
        response.status_code = status


@contextmanager
def _rest_status(info: Info) -> Iterator[None]:
    """Give the HTTP response the status REST would use for a failure; the highest status wins."""
    try:
        yield
    except NotesError as exc:
        _set_status(info, error_status(exc))
        raise
    except Exception:
        # QueryError and anything unexpected; format_error masks the body
        _set_status(info, 500)
        raise


def _notes(info: Info) -> NoteLifecycleService:
    return info.context["note_service"]


def _auth(info: Info) -> AuthService:
    return info.context["auth_service"]


@strawberry.type
class Query:
    @strawberry.field
    async def get_notes_by_user_id(self, info: Info, input: PaginationInput) -> Optional[NotesPage]:
        with _rest_status(info):
            page = await run_in_threadpool(_notes(info).find_notes, _authorization(info), input.page, input.limit)
        return NotesPage(
            paginated_notes=PaginatedNotesType(
                notes=[NoteType.from_read(note) for note in page.notes],
                previous=page.previous,
                next=page.next,
            )
        )

    @strawberry.field
    async def get_note_by_id(self, info: Info, input: NoteIdInput) -> Optional[NoteType]:
        with _rest_status(info):
            note = await run_in_threadpool(_notes(info).find_note, _authorization(info), input.id)
        return NoteType.from_read(note)


@strawberry.type
class Mutation:
    @strawberry.mutation
    async def sign_up(self, info: Info, input: SignUpInput) -> Optional[AuthPayload]:
        with _rest_status(info):
            token = await run_in_threadpool(_auth(info).sign_up, input.email, input.password, input.name, input.lastname)
        return AuthPayload(access_token=token)

    @strawberry.mutation
    async def sign_in(self, info: Info, input: SignInInput) -> Optional[AuthPayload]:
        with _rest_status(info):
            token = await run_in_threadpool(_auth(info).sign_in, input.email, input.password)
        return AuthPayload(access_token=token)

    @strawberry.mutation
    async def create_note(self, info: Info, input: CreateNoteInput) -> Optional[NoteType]:
        with _rest_status(info):
            note = await run_in_threadpool(_notes(info).create_note, _authorization(info), input.title, input.description)
        return NoteType.from_read(note)

    @strawberry.mutation
    async def update_finished_note(self, info: Info, input: UpdateFinishedNoteInput) -> Optional[NoteType]:
        with _rest_status(info):
            note = await run_in_threadpool(
                _notes(info).update_finished_note, _authorization(info), input.id, input.finished
            )
        return NoteType.from_read(note)

    @strawberry.mutation
    async def delete_note(self, info: Info, input: NoteIdInput) -> Optional[bool]:
        with _rest_status(info):
            await run_in_threadpool(_notes(info).delete_note, _authorization(info), input.id)
        return True


schema = strawberry.Schema(query=Query, mutation=Mutation)


# PUBLIC_INTERFACE
def format_error(error: GraphQLError) -> Dict[str, Any]:
    """Render one GraphQL error; domain errors get ``extensions = {message, name}``."""
    formatted = dict(error.formatted)
    original = error.original_error
    if isinstance(original, NotesError):
        formatted["message"] = original.message
        formatted["extensions"] = original.to_dict()
    elif original is not None:
        if isinstance(original, QueryError):
            logger.error("Database failure while resolving %s", error.path, exc_info=original)
        else:
            logger.error("Unexpected error while resolving %s", error.path, exc_info=original)
        formatted["message"] = INTERNAL_ERROR["message"]
        formatted["extensions"] = dict(INTERNAL_ERROR)
    return formatted


class NotesGraphQLRouter(GraphQLRouter):
    """GraphQLRouter whose error entries mirror the REST error body."""

    async def process_result(self, request: Request, result: ExecutionResult) -> GraphQLHTTPResponse:
        data: GraphQLHTTPResponse = {"data": result.data}
        if result.errors:
            data["errors"] = [format_error(err) for err in result.errors]
        return data


async def get_context(
    note_service: NoteLifecycleService = Depends(get_note_service),
    auth_service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    return {"note_service": note_service, "auth_service": auth_service}


# PUBLIC_INTERFACE
def create_graphql_router() -> NotesGraphQLRouter:
    return NotesGraphQLRouter(schema, context_getter=get_context)
