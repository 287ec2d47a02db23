"""End-to-end tests for the REST transport."""
import datetime

import pytest

from src.api.security import SessionValidator, create_access_token
from src.db.db import DatabaseTransaction, QueryError
from src.errors import (
    INTERNAL_ERROR,
    EmailInUseError,
    InvalidCredentialsError,
    InvalidParamError,
    InvalidTokenError,
    NoteNotFoundError,
    TokenExpiredError,
    UnfinishedNoteError,
)

USER = {"email": "test@mail.com", "password": "12345678xX@", "name": "test", "lastname": "test"}
NOTE = {"title": "any title", "description": "any description"}


def sign_up(client, user=USER):
    return client.post("/sign-up", json=user)


def create_note(client, token, note=NOTE):
    return client.post("/create-note", json=note, headers={"Authorization": token})


def find_notes(client, token, page=0, limit=10):
    return client.get("/find-notes", headers={"Authorization": token, "page": str(page), "limit": str(limit)})


def update_finished(client, token, note_id, finished):
    return client.patch(
        "/update-finished-note", json={"id": note_id, "finished": finished}, headers={"Authorization": token}
    )


def delete_note(client, token, note_id):
    return client.request("DELETE", "/delete-note", json={"id": note_id}, headers={"Authorization": token})


def expired_token_for(token):
    user_id = SessionValidator().validate(token)
    return create_access_token(user_id, expires_delta=datetime.timedelta(seconds=-1))


@pytest.fixture
def token(client):
    return sign_up(client).json()["accessToken"]


@pytest.fixture
def note(client, token):
    create_note(client, token)
    return find_notes(client, token).json()["paginatedNotes"]["notes"][0]


class TestAuthEndpoints:
    def test_sign_up(self, client):
        response = sign_up(client)

        assert response.status_code == 200
        assert SessionValidator().validate(response.json()["accessToken"])

    def test_sign_up_twice(self, client):
        sign_up(client)
        response = sign_up(client)

        assert response.status_code == 400
        assert response.json() == EmailInUseError("test@mail.com").to_dict()

    def test_sign_up_invalid_email(self, client):
        response = sign_up(client, {**USER, "email": "nope"})

        assert response.status_code == 400
        assert response.json() == InvalidParamError("email").to_dict()

    def test_sign_in(self, client, token):
        response = client.post("/sign-in", json={"email": USER["email"], "password": USER["password"]})

        assert response.status_code == 200
        assert SessionValidator().validate(response.json()["accessToken"]) == SessionValidator().validate(token)

    def test_sign_in_wrong_password(self, client, token):
        response = client.post("/sign-in", json={"email": USER["email"], "password": "wrong-password"})

        assert response.status_code == 401
        assert response.json() == InvalidCredentialsError().to_dict()


class TestCreateAndFindNotes:
    def test_create_note(self, client, token):
        response = create_note(client, token)

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == NOTE["title"]
        assert body["description"] == NOTE["description"]
        assert body["finished"] is False
        assert body["id"]
        assert body["timestamp"]

    def test_create_note_blank_title(self, client, token):
        response = create_note(client, token, {"title": "  ", "description": ""})

        assert response.status_code == 400
        assert response.json() == InvalidParamError("title").to_dict()

    def test_find_notes_single_page(self, client, token, note):
        response = find_notes(client, token)

        assert response.status_code == 200
        paginated = response.json()["paginatedNotes"]
        assert paginated["notes"] == [note]
        assert paginated["previous"] is None
        assert paginated["next"] is None

    def test_find_notes_beyond_data(self, client, token, note):
        paginated = find_notes(client, token, page=4).json()["paginatedNotes"]

        assert paginated["notes"] == []
        assert paginated["previous"] == 3
        assert paginated["next"] is None

    def test_find_notes_next_marker(self, client, token):
        create_note(client, token)
        create_note(client, token)

        paginated = find_notes(client, token, page=0, limit=1).json()["paginatedNotes"]
        assert len(paginated["notes"]) == 1
        assert paginated["next"] == 1

    def test_find_note(self, client, token, note):
        response = client.get(f"/find-note/{note['id']}", headers={"Authorization": token})

        assert response.status_code == 200
        assert response.json() == note

    def test_find_note_not_found(self, client, token):
        response = client.get("/find-note/any-id", headers={"Authorization": token})

        assert response.status_code == 400
        assert response.json() == NoteNotFoundError("any-id").to_dict()

    def test_find_note_of_another_user(self, client, note):
        other = sign_up(client, {**USER, "email": "other@mail.com"}).json()["accessToken"]
        response = client.get(f"/find-note/{note['id']}", headers={"Authorization": other})

        assert response.status_code == 400
        assert response.json() == NoteNotFoundError(note["id"]).to_dict()

    def test_find_note_token_expired(self, client, token, note):
        response = client.get(f"/find-note/{note['id']}", headers={"Authorization": expired_token_for(token)})

        assert response.status_code == 401
        assert response.json() == TokenExpiredError().to_dict()

    def test_missing_authorization(self, client):
        response = client.get("/find-notes")

        assert response.status_code == 401
        assert response.json() == InvalidTokenError().to_dict()


class TestUpdateFinishedNote:
    def test_update_finished(self, client, token, note):
        response = update_finished(client, token, note["id"], True)

        assert response.status_code == 200
        body = response.json()
        assert body["finished"] is True
        assert body["title"] == NOTE["title"]
        assert body["description"] == NOTE["description"]
        assert body["id"] == note["id"]

    def test_update_finished_not_found(self, client, token):
        response = update_finished(client, token, "any-id", True)

        assert response.status_code == 400
        assert response.json() == NoteNotFoundError("any-id").to_dict()

    def test_update_finished_token_expired(self, client, token, note):
        response = update_finished(client, expired_token_for(token), note["id"], True)

        assert response.status_code == 401
        assert response.json() == TokenExpiredError().to_dict()
        assert find_notes(client, token).json()["paginatedNotes"]["notes"][0]["finished"] is False


class TestDeleteNote:
    def test_delete_finished_note(self, client, token, note):
        update_finished(client, token, note["id"], True)
        response = delete_note(client, token, note["id"])

        assert response.status_code == 204
        assert find_notes(client, token).json()["paginatedNotes"]["notes"] == []

    def test_delete_not_found(self, client, token):
        response = delete_note(client, token, "any-id")

        assert response.status_code == 400
        assert response.json() == NoteNotFoundError("any-id").to_dict()

    def test_delete_unfinished(self, client, token, note):
        response = delete_note(client, token, note["id"])

        assert response.status_code == 400
        assert response.json() == UnfinishedNoteError(note["id"]).to_dict()
        assert find_notes(client, token).json()["paginatedNotes"]["notes"] == [note]

    def test_delete_token_expired(self, client, token, note):
        update_finished(client, token, note["id"], True)
        response = delete_note(client, expired_token_for(token), note["id"])

        assert response.status_code == 401
        assert response.json() == TokenExpiredError().to_dict()
        assert len(find_notes(client, token).json()["paginatedNotes"]["notes"]) == 1


class TestPaginationHeaders:
    def test_page_beyond_any_offset(self, client, token, note):
        paginated = find_notes(client, token, page=10 ** 19).json()["paginatedNotes"]

        assert paginated["notes"] == []
        assert paginated["previous"] == 10 ** 19 - 1
        assert paginated["next"] is None

    def test_page_not_a_number(self, client, token):
        response = find_notes(client, token, page="abc")

        assert response.status_code == 400
        assert response.json() == InvalidParamError("page").to_dict()

    def test_negative_limit(self, client, token):
        response = find_notes(client, token, limit=-1)

        assert response.status_code == 400
        assert response.json() == InvalidParamError("limit").to_dict()

    def test_token_checked_before_headers(self, client):
        response = client.get("/find-notes", headers={"page": "abc"})

        assert response.status_code == 401
        assert response.json() == InvalidTokenError().to_dict()

    def test_missing_headers_use_defaults(self, client, token, note):
        response = client.get("/find-notes", headers={"Authorization": token})

        assert response.status_code == 200
        assert response.json()["paginatedNotes"] == {"notes": [note], "previous": None, "next": None}


class TestStoreFailure:
    """A failing store is a 500 with a generic body, and nothing is written."""

    def test_create_note_commit_fails(self, client, token, monkeypatch):
        def failing_commit(self):
            raise QueryError("connection lost")

        with monkeypatch.context() as patch:
            patch.setattr(DatabaseTransaction, "commit", failing_commit)
            response = create_note(client, token)

        assert response.status_code == 500
        assert response.json() == INTERNAL_ERROR
        assert find_notes(client, token).json()["paginatedNotes"]["notes"] == []

    def test_delete_note_commit_fails(self, client, token, note, monkeypatch):
        update_finished(client, token, note["id"], True)

        def failing_commit(self):
            raise QueryError("connection lost")

        with monkeypatch.context() as patch:
            patch.setattr(DatabaseTransaction, "commit", failing_commit)
            response = delete_note(client, token, note["id"])

        assert response.status_code == 500
        assert response.json() == INTERNAL_ERROR
        assert len(find_notes(client, token).json()["paginatedNotes"]["notes"]) == 1
