"""
Integration tests for API endpoints.
"""

import json
from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from readcommons.api.dependencies import get_book_store
from readcommons.api.main import create_app
from readcommons.storage import DEFAULT_USER_PERMISSIONS, TokenScope
from readcommons.storage.permissions import BOOKS_READ

from tests.conftest import auth_headers, make_user

pytestmark = pytest.mark.asyncio


async def create_book(client, headers, data) -> dict:
    response = await client.post("/api/v1/books", json=data, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["book"]


class TestHealthEndpoints:
    """Tests for the health check endpoint."""

    async def test_health_check(self, client):
        response = await client.get("/api/v1/healthcheck")

        assert response.status_code == 200
        assert response.json() == {
            "status": "available",
            "system_info": {"environment": "test", "version": "1.0.0"},
        }

    async def test_unknown_route(self, client):
        response = await client.get("/api/v1/nowhere")

        assert response.status_code == 404
        assert response.json() == {"error": "the requested resource could not be found"}

    async def test_method_not_allowed(self, client):
        response = await client.put("/api/v1/healthcheck")

        assert response.status_code == 405
        assert response.json() == {"error": "the PUT method is not supported for this resource"}


class TestAuthentication:
    """Tests for the bearer-token middleware and the route gates."""

    async def test_anonymous_is_asked_to_authenticate(self, client):
        response = await client.get("/api/v1/books")

        assert response.status_code == 401
        assert response.json() == {"error": "you must be authenticated to access this resource"}
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.parametrize(
        "header",
        ["Token abc", "Bearer", "Bearer too short", "Bearer ABCDEFGHIJKLMNOPQRSTUVWXYZ"],
    )
    async def test_bad_tokens(self, client, header):
        response = await client.get("/api/v1/healthcheck", headers={"Authorization": header})

        assert response.status_code == 401
        assert response.json() == {"error": "invalid or missing authentication token"}
        assert response.headers["WWW-Authenticate"] == "Bearer"

    async def test_expired_token(self, client, services, reader):
        token = await services.tokens.new(reader.id, timedelta(seconds=-1), TokenScope.AUTHENTICATION)
        response = await client.get(
            "/api/v1/books",
            headers={"Authorization": f"Bearer {token.plaintext}"},
        )
        assert response.status_code == 401

    async def test_token_of_wrong_scope(self, client, services, reader):
        token = await services.tokens.new(reader.id, timedelta(hours=1), TokenScope.ACTIVATION)
        response = await client.get(
            "/api/v1/books",
            headers={"Authorization": f"Bearer {token.plaintext}"},
        )
        assert response.status_code == 401

    async def test_vary_header(self, client, reader_headers):
        response = await client.get("/api/v1/books", headers=reader_headers)

        assert response.status_code == 200
        assert "Authorization" in response.headers.get_list("Vary")

    async def test_inactive_user_is_forbidden(self, client, services):
        user = await make_user(services, "dormant@example.com", activated=False)
        headers = await auth_headers(services, user)

        response = await client.get("/api/v1/books", headers=headers)

        assert response.status_code == 403
        assert response.json() == {"error": "your user account must be activated to access this resource"}

    async def test_missing_permission_looks_like_not_found(self, client, reader_headers, sample_book_data):
        response = await client.post("/api/v1/books", json=sample_book_data, headers=reader_headers)

        assert response.status_code == 404
        assert response.json() == {"error": "the requested resource could not be found"}

    async def test_permission_check_on_reads(self, client, services):
        user = await make_user(services, "nobody@example.com", permissions=())
        headers = await auth_headers(services, user)

        response = await client.get("/api/v1/books", headers=headers)
        assert response.status_code == 404

        await services.permissions.add_for_user(user.id, BOOKS_READ)
        response = await client.get("/api/v1/books", headers=headers)
        assert response.status_code == 200

    async def test_auth_errors_precede_body_validation(self, client):
        response = await client.post("/api/v1/books", json={"title": ""})
        assert response.status_code == 401


class TestBooksEndpoints:
    """Tests for book CRUD endpoints."""

    async def test_create_book(self, client, librarian_headers, sample_book_data):
        response = await client.post("/api/v1/books", json=sample_book_data, headers=librarian_headers)

        assert response.status_code == 201
        book = response.json()["book"]
        assert book["title"] == sample_book_data["title"]
        assert book["authors"] == sample_book_data["authors"]
        assert book["version"] == 1
        assert book["average_rating"] == 0.0
        assert response.headers["Location"] == f"/api/v1/books/{book['id']}"

    async def test_create_book_validation(self, client, librarian_headers, sample_book_data):
        data = dict(sample_book_data, authors=[], publication_date="2999-01-01")
        response = await client.post("/api/v1/books", json=data, headers=librarian_headers)

        assert response.status_code == 422
        assert response.json() == {
            "error": {
                "authors": "must contain at least one author",
                "publication_date": "must not be in the future",
            }
        }

    async def test_isbn_out_of_range(self, client, librarian_headers, sample_book_data):
        data = dict(sample_book_data, isbn=10**20)
        response = await client.post("/api/v1/books", json=data, headers=librarian_headers)

        assert response.status_code == 422
        assert response.json() == {"error": {"isbn": "must be a valid ISBN"}}

    async def test_get_book(self, client, librarian_headers, reader_headers, sample_book_data):
        book = await create_book(client, librarian_headers, sample_book_data)

        response = await client.get(f"/api/v1/books/{book['id']}", headers=reader_headers)

        assert response.status_code == 200
        assert response.json()["book"] == book

    @pytest.mark.parametrize("book_id", ["999", "0", "-1", "abc", "99999999999999999999"])
    async def test_get_missing_book(self, client, reader_headers, book_id):
        response = await client.get(f"/api/v1/books/{book_id}", headers=reader_headers)

        assert response.status_code == 404
        assert response.json() == {"error": "the requested resource could not be found"}

    async def test_partial_update(self, client, librarian_headers, sample_book_data):
        book = await create_book(client, librarian_headers, sample_book_data)

        response = await client.patch(
            f"/api/v1/books/{book['id']}",
            json={"title": "The Great Gatsby (Annotated)", "description": None},
            headers=librarian_headers,
        )

        assert response.status_code == 200
        updated = response.json()["book"]
        assert updated["title"] == "The Great Gatsby (Annotated)"
        assert updated["description"] == sample_book_data["description"]
        assert updated["authors"] == sample_book_data["authors"]
        assert updated["version"] == 2

    async def test_partial_update_validation(self, client, librarian_headers, sample_book_data):
        book = await create_book(client, librarian_headers, sample_book_data)

        response = await client.patch(
            f"/api/v1/books/{book['id']}",
            json={"genres": ["Fiction", "Fiction"]},
            headers=librarian_headers,
        )

        assert response.status_code == 422
        assert response.json() == {"error": {"genres": "must not contain duplicate values"}}

    async def test_delete_book(self, client, librarian_headers, sample_book_data):
        book = await create_book(client, librarian_headers, sample_book_data)

        response = await client.delete(f"/api/v1/books/{book['id']}", headers=librarian_headers)
        assert response.status_code == 200
        assert response.json() == {"message": "book successfully deleted"}

        response = await client.delete(f"/api/v1/books/{book['id']}", headers=librarian_headers)
        assert response.status_code == 404


class TestListEndpoints:
    """Tests for paging, sorting and search on list endpoints."""

    @pytest.fixture
    async def catalogue(self, client, librarian_headers, sample_books_batch):
        return [await create_book(client, librarian_headers, data) for data in sample_books_batch]

    async def test_default_listing(self, client, reader_headers, catalogue):
        response = await client.get("/api/v1/books", headers=reader_headers)

        assert response.status_code == 200
        data = response.json()
        assert [b["id"] for b in data["books"]] == [b["id"] for b in catalogue]
        assert data["@metadata"] == {
            "current_page": 1,
            "page_size": 10,
            "first_page": 1,
            "last_page": 1,
            "total_records": 3,
        }

    async def test_paging_and_sorting(self, client, reader_headers, catalogue):
        response = await client.get(
            "/api/v1/books",
            params={"page": 1, "page_size": 2, "sorting": "-title"},
            headers=reader_headers,
        )

        data = response.json()
        assert [b["title"] for b in data["books"]] == ["To Kill a Mockingbird", "Pride and Prejudice"]
        assert data["@metadata"]["last_page"] == 2

    async def test_search(self, client, reader_headers, catalogue):
        response = await client.get(
            "/api/v1/books",
            params={"genre": "classic", "author": "austen"},
            headers=reader_headers,
        )

        assert [b["title"] for b in response.json()["books"]] == ["Pride and Prejudice"]

    async def test_empty_result_metadata(self, client, reader_headers, catalogue):
        response = await client.get("/api/v1/books", params={"title": "nothing"}, headers=reader_headers)

        data = response.json()
        assert data["books"] == []
        assert data["@metadata"]["total_records"] == 0

    @pytest.mark.parametrize(
        "params,errors",
        [
            ({"page": "abc"}, {"page": "must be an integer value"}),
            ({"page": "0"}, {"page": "must be greater than zero"}),
            ({"page_size": "101"}, {"page_size": "must be a maximum of 100"}),
            ({"sorting": "description"}, {"sort": "invalid sort value"}),
        ],
    )
    async def test_invalid_filters(self, client, reader_headers, params, errors):
        response = await client.get("/api/v1/books", params=params, headers=reader_headers)

        assert response.status_code == 422
        assert response.json() == {"error": errors}

    async def test_bad_sort_never_reaches_the_store(self, app, client, reader_headers):
        class RecordingStore:
            calls = 0

            async def list(self, *args, **kwargs):
                self.calls += 1
                return [], None

        store = RecordingStore()
        app.dependency_overrides[get_book_store] = lambda: store

        response = await client.get("/api/v1/books", params={"sorting": "id; DROP TABLE books"}, headers=reader_headers)

        assert response.status_code == 422
        assert store.calls == 0


class TestRequestBodies:
    """Tests for body parsing errors."""

    async def test_unknown_key(self, client, librarian_headers, sample_book_data):
        data = dict(sample_book_data, publisher="Scribner")
        response = await client.post("/api/v1/books", json=data, headers=librarian_headers)

        assert response.status_code == 400
        assert response.json() == {"error": 'body contains unknown key "publisher"'}

    async def test_badly_formed_json(self, client, librarian_headers):
        response = await client.post(
            "/api/v1/books",
            content=b'{"title": ',
            headers={**librarian_headers, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "body contains badly-formed JSON"}

    async def test_wrong_type(self, client, librarian_headers, sample_book_data):
        data = dict(sample_book_data, isbn="not a number")
        response = await client.post("/api/v1/books", json=data, headers=librarian_headers)

        assert response.status_code == 400
        assert response.json() == {"error": 'body contains incorrect JSON type for "isbn"'}

    async def test_body_too_large(self, client, services, librarian_headers, sample_book_data):
        services.settings.max_body_bytes = 100
        data = dict(sample_book_data, description="x" * 200)

        response = await client.post("/api/v1/books", content=json.dumps(data), headers={
            **librarian_headers,
            "Content-Type": "application/json",
        })

        assert response.status_code == 400
        assert response.json() == {"error": "body must not be larger than 100 bytes"}


class TestReviewsEndpoints:
    """Tests for reviews."""

    @pytest.fixture
    async def book(self, client, librarian_headers, sample_book_data):
        return await create_book(client, librarian_headers, sample_book_data)

    async def test_review_lifecycle(self, client, reader_headers, book):
        response = await client.post(
            f"/api/v1/books/{book['id']}/reviews",
            json={"rating": 4, "review_text": "Glittering"},
            headers=reader_headers,
        )
        assert response.status_code == 201
        review = response.json()["review"]

        response = await client.get(f"/api/v1/books/{book['id']}", headers=reader_headers)
        assert response.json()["book"]["average_rating"] == 4.0

        response = await client.patch(
            f"/api/v1/reviews/{review['id']}",
            json={"rating": 2},
            headers=reader_headers,
        )
        assert response.status_code == 200
        assert response.json()["review"]["review_text"] == "Glittering"

        response = await client.get(f"/api/v1/books/{book['id']}/reviews", headers=reader_headers)
        assert [r["rating"] for r in response.json()["reviews"]] == [2.0]

        response = await client.delete(f"/api/v1/reviews/{review['id']}", headers=reader_headers)
        assert response.json() == {"message": "review successfully deleted"}

    async def test_review_validation(self, client, reader_headers, book):
        response = await client.post(
            f"/api/v1/books/{book['id']}/reviews",
            json={"rating": 9, "review_text": ""},
            headers=reader_headers,
        )

        assert response.status_code == 422
        assert response.json() == {
            "error": {"rating": "must be between 1 and 5", "review_text": "must be provided"}
        }

    async def test_review_for_unknown_book(self, client, reader_headers):
        response = await client.post(
            "/api/v1/books/999/reviews",
            json={"rating": 4, "review_text": "Hmm"},
            headers=reader_headers,
        )
        assert response.status_code == 404

    async def test_book_deleted_before_insert(self, app, client, services, reader_headers, book):
        class VanishingBookStore:
            async def exists(self, book_id):
                await services.books.delete(book_id)
                return True

        app.dependency_overrides[get_book_store] = lambda: VanishingBookStore()

        response = await client.post(
            f"/api/v1/books/{book['id']}/reviews",
            json={"rating": 4, "review_text": "Too late"},
            headers=reader_headers,
        )

        assert response.status_code == 404
        assert response.json() == {"error": "the requested resource could not be found"}

    async def test_only_the_author_may_edit(self, client, services, reader_headers, book):
        response = await client.post(
            f"/api/v1/books/{book['id']}/reviews",
            json={"rating": 4, "review_text": "Mine"},
            headers=reader_headers,
        )
        review = response.json()["review"]

        other = await make_user(services, "other@example.com")
        other_headers = await auth_headers(services, other)

        response = await client.patch(
            f"/api/v1/reviews/{review['id']}",
            json={"rating": 1},
            headers=other_headers,
        )
        assert response.status_code == 404

        response = await client.get(f"/api/v1/reviews/{review['id']}", headers=other_headers)
        assert response.status_code == 200


class TestReadingListEndpoints:
    """Tests for reading lists."""

    @pytest.fixture
    async def book(self, client, librarian_headers, sample_book_data):
        return await create_book(client, librarian_headers, sample_book_data)

    async def create_list(self, client, headers) -> dict:
        response = await client.post(
            "/api/v1/lists",
            json={"name": "Summer", "description": "Beach reads"},
            headers=headers,
        )
        assert response.status_code == 201
        return response.json()["reading_list"]

    async def test_membership(self, client, reader, reader_headers, book):
        reading_list = await self.create_list(client, reader_headers)
        assert reading_list["created_by"] == reader.id

        response = await client.post(
            f"/api/v1/lists/{reading_list['id']}/books",
            json={"book_id": book["id"], "status": "reading"},
            headers=reader_headers,
        )
        assert response.status_code == 201
        assert response.json()["entry"]["title"] == book["title"]

        response = await client.post(
            f"/api/v1/lists/{reading_list['id']}/books",
            json={"book_id": book["id"], "status": "completed"},
            headers=reader_headers,
        )
        assert response.status_code == 422
        assert response.json() == {"error": {"book": "book already exists in this reading list"}}

        response = await client.get(f"/api/v1/lists/{reading_list['id']}", headers=reader_headers)
        detail = response.json()["reading_list"]
        assert detail["name"] == "Summer"
        assert [(b["book_id"], b["status"]) for b in detail["books"]] == [(book["id"], "reading")]

        response = await client.delete(
            f"/api/v1/lists/{reading_list['id']}/books/{book['id']}",
            headers=reader_headers,
        )
        assert response.status_code == 200

        response = await client.delete(
            f"/api/v1/lists/{reading_list['id']}/books/{book['id']}",
            headers=reader_headers,
        )
        assert response.status_code == 404

    async def test_invalid_status(self, client, reader_headers, book):
        reading_list = await self.create_list(client, reader_headers)

        response = await client.post(
            f"/api/v1/lists/{reading_list['id']}/books",
            json={"book_id": book["id"], "status": "abandoned"},
            headers=reader_headers,
        )

        assert response.status_code == 422
        assert "status" in response.json()["error"]

    async def test_unknown_book(self, client, reader_headers):
        reading_list = await self.create_list(client, reader_headers)

        response = await client.post(
            f"/api/v1/lists/{reading_list['id']}/books",
            json={"book_id": 999, "status": "to-read"},
            headers=reader_headers,
        )
        assert response.status_code == 404

    @pytest.mark.parametrize(
        "body, errors",
        [
            ({"status": "to-read"}, {"book_id": "must be provided"}),
            ({"book_id": 10**20, "status": "to-read"}, {"book_id": "must be a valid book id"}),
            ({"book_id": 0, "status": "to-read"}, {"book_id": "must be a valid book id"}),
        ],
    )
    async def test_invalid_book_id(self, client, reader_headers, body, errors):
        reading_list = await self.create_list(client, reader_headers)

        response = await client.post(
            f"/api/v1/lists/{reading_list['id']}/books",
            json=body,
            headers=reader_headers,
        )

        assert response.status_code == 422
        assert response.json() == {"error": errors}

    async def test_owner_only_writes(self, client, services, reader_headers):
        reading_list = await self.create_list(client, reader_headers)
        other = await make_user(services, "other@example.com")
        other_headers = await auth_headers(services, other)

        response = await client.patch(
            f"/api/v1/lists/{reading_list['id']}",
            json={"name": "Mine now"},
            headers=other_headers,
        )
        assert response.status_code == 404

        response = await client.patch(
            f"/api/v1/lists/{reading_list['id']}",
            json={"name": "Autumn"},
            headers=reader_headers,
        )
        assert response.json()["reading_list"]["name"] == "Autumn"

        response = await client.delete(f"/api/v1/lists/{reading_list['id']}", headers=reader_headers)
        assert response.json() == {"message": "reading list successfully deleted"}

    async def test_search_lists(self, client, reader_headers):
        await self.create_list(client, reader_headers)

        response = await client.get("/api/v1/lists", params={"description": "beach"}, headers=reader_headers)
        assert response.json()["@metadata"]["total_records"] == 1

        response = await client.get("/api/v1/lists", params={"name": "winter"}, headers=reader_headers)
        assert response.json()["reading_lists"] == []


class TestCommentEndpoints:
    """Tests for comments."""

    async def test_anonymous_can_read(self, client, reader_headers):
        response = await client.post(
            "/api/v1/comments",
            json={"content": "Great community", "author": "reader"},
            headers=reader_headers,
        )
        assert response.status_code == 201
        comment = response.json()["comment"]

        response = await client.get(f"/api/v1/comments/{comment['id']}")
        assert response.status_code == 200
        assert response.json()["comment"]["content"] == "Great community"

        response = await client.get("/api/v1/comments", params={"content": "community"})
        assert response.json()["@metadata"]["total_records"] == 1

    async def test_anonymous_cannot_write(self, client):
        response = await client.post("/api/v1/comments", json={"content": "Hi", "author": "anon"})
        assert response.status_code == 401

    async def test_update_and_delete(self, client, reader_headers):
        response = await client.post(
            "/api/v1/comments",
            json={"content": "Frist", "author": "reader"},
            headers=reader_headers,
        )
        comment = response.json()["comment"]

        response = await client.patch(
            f"/api/v1/comments/{comment['id']}",
            json={"content": "First"},
            headers=reader_headers,
        )
        assert response.json()["comment"]["content"] == "First"
        assert response.json()["comment"]["version"] == 2

        response = await client.delete(f"/api/v1/comments/{comment['id']}", headers=reader_headers)
        assert response.json() == {"message": "comment successfully deleted"}


class TestUserLifecycle:
    """Tests for registration, activation, login and password reset."""

    async def test_register_activate_login(self, client, services, mail_transport):
        response = await client.post(
            "/api/v1/users",
            json={"username": "alice", "email": "alice@example.com", "password": "pa55word1234"},
        )
        assert response.status_code == 201
        user = response.json()["user"]
        assert user["activated"] is False
        assert "password" not in json.dumps(user)

        assert await services.tasks.drain(1.0)
        assert len(mail_transport.sent) == 1
        message = mail_transport.sent[0]
        assert message.recipient == "alice@example.com"
        token = message.body.split('"token": "')[1].split('"')[0]

        grants = await services.permissions.get_all_for_user(user["id"])
        assert set(grants) == set(DEFAULT_USER_PERMISSIONS)

        response = await client.put("/api/v1/users/activated", json={"token": token})
        assert response.status_code == 200
        assert response.json()["user"]["activated"] is True

        response = await client.put("/api/v1/users/activated", json={"token": token})
        assert response.status_code == 422
        assert response.json() == {"error": {"token": "invalid or expired activation token"}}

        response = await client.post(
            "/api/v1/tokens/authentication",
            json={"email": "alice@example.com", "password": "pa55word1234"},
        )
        assert response.status_code == 201
        plaintext = response.json()["authentication_token"]["token"]

        response = await client.get(
            f"/api/v1/users/{user['id']}",
            headers={"Authorization": f"Bearer {plaintext}"},
        )
        assert response.status_code == 200
        assert response.json()["user"]["email"] == "alice@example.com"

    async def test_duplicate_email(self, client, reader):
        response = await client.post(
            "/api/v1/users",
            json={"username": "again", "email": reader.email, "password": "pa55word1234"},
        )

        assert response.status_code == 422
        assert response.json() == {"error": {"email": "a user with this email address already exists"}}

    async def test_duplicate_email_differing_in_case(self, client, reader):
        response = await client.post(
            "/api/v1/users",
            json={"username": "twin", "email": reader.email.upper(), "password": "an0ther-pa55word"},
        )

        assert response.status_code == 422
        assert response.json() == {"error": {"email": "a user with this email address already exists"}}

        response = await client.post(
            "/api/v1/tokens/authentication",
            json={"email": reader.email.upper(), "password": "pa55word1234"},
        )
        assert response.status_code == 201

    async def test_registration_validation(self, client):
        response = await client.post("/api/v1/users", json={"username": "", "email": "x", "password": "short"})

        assert response.status_code == 422
        assert set(response.json()["error"]) == {"username", "email", "password"}

    @pytest.mark.parametrize(
        "credentials",
        [
            {"email": "reader@example.com", "password": "wrong-password"},
            {"email": "nobody@example.com", "password": "pa55word1234"},
        ],
    )
    async def test_bad_credentials(self, client, reader, credentials):
        response = await client.post("/api/v1/tokens/authentication", json=credentials)

        assert response.status_code == 401
        assert response.json() == {"error": "invalid authentication credentials"}

    async def test_reissue_activation_token(self, client, services, mail_transport, reader):
        await make_user(services, "dormant@example.com", activated=False)

        response = await client.post("/api/v1/tokens/activation", json={"email": "dormant@example.com"})
        assert response.status_code == 202
        await services.tasks.drain(1.0)
        assert mail_transport.sent[-1].recipient == "dormant@example.com"

        response = await client.post("/api/v1/tokens/activation", json={"email": reader.email})
        assert response.status_code == 422
        assert response.json() == {"error": {"email": "user has already been activated"}}

        response = await client.post("/api/v1/tokens/activation", json={"email": "nobody@example.com"})
        assert response.json() == {"error": {"email": "no matching email address found"}}

    async def test_password_reset(self, client, services, mail_transport, reader):
        response = await client.post("/api/v1/tokens/password-reset", json={"email": reader.email})
        assert response.status_code == 202

        await services.tasks.drain(1.0)
        token = mail_transport.sent[-1].body.split('"token": "')[1].split('"')[0]

        response = await client.put(
            "/api/v1/users/password",
            json={"password": "n3w-password", "token": token},
        )
        assert response.status_code == 200
        assert response.json() == {"message": "your password was successfully reset"}

        response = await client.post(
            "/api/v1/tokens/authentication",
            json={"email": reader.email, "password": "n3w-password"},
        )
        assert response.status_code == 201

        response = await client.put(
            "/api/v1/users/password",
            json={"password": "another-password", "token": token},
        )
        assert response.status_code == 422

    async def test_password_reset_needs_activation(self, client, services):
        await make_user(services, "dormant@example.com", activated=False)

        response = await client.post("/api/v1/tokens/password-reset", json={"email": "dormant@example.com"})

        assert response.status_code == 422
        assert response.json() == {"error": {"email": "user account must be activated"}}

    async def test_user_lists_and_reviews(self, client, reader, reader_headers):
        await client.post(
            "/api/v1/lists",
            json={"name": "Summer", "description": "Beach reads"},
            headers=reader_headers,
        )

        response = await client.get(f"/api/v1/users/{reader.id}/lists", headers=reader_headers)
        assert response.json()["@metadata"]["total_records"] == 1

        response = await client.get(f"/api/v1/users/{reader.id}/reviews", headers=reader_headers)
        assert response.json()["reviews"] == []

        response = await client.get("/api/v1/users/999/lists", headers=reader_headers)
        assert response.status_code == 404


class TestRateLimiting:
    """Tests for the rate limit middleware."""

    async def test_requests_over_the_burst_are_refused(self, services):
        services.settings.rate_limit_enabled = True
        services.settings.rate_limit_burst = 2
        services.settings.rate_limit_rps = 0.001
        services._rate_limiter = None

        app = create_app(services=services)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            statuses = [(await client.get("/api/v1/healthcheck")).status_code for _ in range(3)]
            response = await client.get("/api/v1/healthcheck")

        assert statuses == [200, 200, 429]
        assert response.json() == {"error": "rate limit exceeded"}


class TestRecovery:
    """Tests for the recovery middleware."""

    async def test_unexpected_error_becomes_500(self, app, client, reader_headers):
        class BrokenStore:
            async def list(self, *args, **kwargs):
                raise RuntimeError("boom")

        app.dependency_overrides[get_book_store] = lambda: BrokenStore()

        response = await client.get("/api/v1/books", headers=reader_headers)

        assert response.status_code == 500
        assert response.json() == {"error": "the server encountered a problem and could not process your request"}
        assert response.headers["Connection"] == "close"
