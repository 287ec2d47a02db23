import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.core import AuthService, NoteLifecycleService, get_auth_service, get_note_service
from src.api.graphql_schema import create_graphql_router
from src.api.schemas import (
    DeleteNote,
    ErrorResponse,
    NoteCreate,
    NoteRead,
    PaginatedNotesResponse,
    SignInRequest,
    SignUpRequest,
    Token,
    UpdateFinishedNote,
)
from src.config import configure_logging
from src.db.db import QueryError, dispose_engine, init_db
from src.errors import INTERNAL_ERROR, NotesError, error_status

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()
    yield
    dispose_engine()


openapi_tags = [
    {"name": "auth", "description": "Sign up and sign in"},
    {"name": "notes", "description": "Create, list, finish, and delete notes"},
    {"name": "graphql", "description": "GraphQL endpoint sharing the same services"},
]

app = FastAPI(
    title="Notes Backend API",
    description="FastAPI backend for personal notes, with REST and GraphQL transports.",
    version="1.0",
    openapi_tags=openapi_tags,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(create_graphql_router(), prefix="/graphql", tags=["graphql"])

error_responses = {400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}}


@app.exception_handler(NotesError)
async def notes_error_handler(request: Request, exc: NotesError):
    logger.debug("%s %s failed: %s", request.method, request.url.path, exc.name)
    return JSONResponse(status_code=error_status(exc), content=exc.to_dict())


@app.exception_handler(QueryError)
async def query_error_handler(request: Request, exc: QueryError):
    logger.error("Database failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content=INTERNAL_ERROR)


@app.get("/", tags=["health"])
def health_check():
    """Health check root."""
    return {"message": "Healthy"}

# --- Authentication Endpoints ---

# PUBLIC_INTERFACE
@app.post("/sign-up", response_model=Token, tags=["auth"], summary="Register a new user", responses=error_responses)
def sign_up(user: SignUpRequest, auth: AuthService = Depends(get_auth_service)):
    """Register a new user and return an access token. Email must be unique."""
    return Token(access_token=auth.sign_up(user.email, user.password, user.name, user.lastname))

# PUBLIC_INTERFACE
@app.post("/sign-in", response_model=Token, tags=["auth"], summary="Obtain an access token", responses=error_responses)
def sign_in(credentials: SignInRequest, auth: AuthService = Depends(get_auth_service)):
    """Authenticate with email and password."""
    return Token(access_token=auth.sign_in(credentials.email, credentials.password))

# --- Notes Endpoints ---

# PUBLIC_INTERFACE
@app.post("/create-note", response_model=NoteRead, tags=["notes"], summary="Create a new note", responses=error_responses)
def create_note(
    note: NoteCreate,
    authorization: Optional[str] = Header(None),
    service: NoteLifecycleService = Depends(get_note_service),
):
    """Create an unfinished note belonging to the authenticated user."""
    return service.create_note(authorization, note.title, note.description)

# PUBLIC_INTERFACE
@app.get("/find-notes", response_model=PaginatedNotesResponse, tags=["notes"], summary="List my notes", responses=error_responses)
def find_notes(
    page: Optional[str] = Header(None),
    limit: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
    service: NoteLifecycleService = Depends(get_note_service),
):
    """One page of notes, oldest first. ``page`` and ``limit`` are request headers."""
    return PaginatedNotesResponse(paginated_notes=service.find_notes(authorization, page, limit))

# PUBLIC_INTERFACE
@app.get("/find-note/{note_id}", response_model=NoteRead, tags=["notes"], summary="Get specific note", responses=error_responses)
def find_note(
    note_id: str,
    authorization: Optional[str] = Header(None),
    service: NoteLifecycleService = Depends(get_note_service),
):
    """Get a single note by ID (must be owned by the current user)."""
    return service.find_note(authorization, note_id)

# PUBLIC_INTERFACE
@app.patch("/update-finished-note", response_model=NoteRead, tags=["notes"], summary="Mark a note finished or unfinished", responses=error_responses)
def update_finished_note(
    body: UpdateFinishedNote,
    authorization: Optional[str] = Header(None),
    service: NoteLifecycleService = Depends(get_note_service),
):
    return service.update_finished_note(authorization, body.id, body.finished)

# PUBLIC_INTERFACE
@app.delete("/delete-note", tags=["notes"], summary="Delete a finished note", status_code=204, responses=error_responses)
def delete_note(
    body: DeleteNote,
    authorization: Optional[str] = Header(None),
    service: NoteLifecycleService = Depends(get_note_service),
):
    """Delete one of your notes. Unfinished notes cannot be deleted."""
    service.delete_note(authorization, body.id)
    return Response(status_code=204)
