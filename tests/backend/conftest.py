import os
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tortoise import Tortoise

from confdesk.core import db as db_module
from confdesk.core import mailer, storage
from confdesk.core.security import hash_password
from confdesk.main import app
from confdesk.models.user import Role, User


TEST_DB_URL = "sqlite://:memory:"
os.environ["DATABASE_URL"] = TEST_DB_URL
db_module.DB_URL = TEST_DB_URL
db_module.TORTOISE_ORM["connections"]["default"] = TEST_DB_URL

PDF_BYTES = b"%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF"


async def _init_test_db() -> None:
    """
    Initialize a clean in-memory SQLite database for every test.
    Ensures tables are recreated from scratch.
    """
    if Tortoise._inited:
        await Tortoise.close_connections()
    await Tortoise.init(config=db_module.TORTOISE_ORM)
    await Tortoise.generate_schemas()


@pytest_asyncio.fixture
async def db():
    """Fresh schema without an HTTP client, for service-level tests."""
    await _init_test_db()
    yield
    await Tortoise.close_connections()


@pytest_asyncio.fixture
async def client():
    """
    Provide an HTTPX AsyncClient bound to the FastAPI app with a fresh DB.
    """
    await _init_test_db()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client
    await Tortoise.close_connections()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """
    Replace SMTP delivery with an in-memory list of (to, subject, html).
    """
    outbox_mails: list[tuple[str, str, str]] = []

    async def _fake_send(to: str, subject: str, html: str) -> None:
        outbox_mails.append((to, subject, html))

    monkeypatch.setattr(mailer, "send_email", _fake_send)
    return outbox_mails


@pytest.fixture(autouse=True)
def uploaded_files(monkeypatch):
    """
    Replace the object store with a dict of public_id -> (folder, resource_type, size).
    """
    files: dict[str, tuple[str, str, int]] = {}

    async def _fake_upload(content: bytes, filename: str, folder: str, resource_type: str = "raw") -> dict:
        if not content:
            raise storage.StorageError("Empty file")
        public_id = f"{folder}/{uuid.uuid4().hex[:12]}"
        files[public_id] = (folder, resource_type, len(content))
        return {"url": f"https://files.test/{public_id}", "publicId": public_id, "fileName": filename}

    async def _fake_delete(public_id: str, resource_type: str = "raw") -> None:
        files.pop(public_id, None)

    monkeypatch.setattr(storage, "upload_file", _fake_upload)
    monkeypatch.setattr(storage, "delete_file", _fake_delete)
    return files


@pytest_asyncio.fixture
async def create_user():
    """
    Factory fixture to create verified users of any role directly via ORM.
    """

    async def _create_user(role: Role = Role.AUTHOR, email: str | None = None,
                           password: str = "UserPass!23", verified: bool = True) -> tuple[User, str]:
        tag = uuid.uuid4().hex[:6]
        user = await User.create(
            username=f"{Role(role).value.lower()}_{tag}",
            email=email or f"{Role(role).value.lower()}_{tag}@example.com",
            password_hash=hash_password(password),
            role=role,
            verified=verified,
        )
        return user, password

    return _create_user


@pytest_asyncio.fixture
async def auth_header_factory(client):
    """
    Helper fixture to obtain Authorization headers via the login endpoint.
    """

    async def _get_headers(email: str, password: str) -> dict[str, str]:
        resp = await client.post(
            "/api/v1/auth/login",
            json={"email": email, "password": password},
        )
        assert resp.status_code == 200, resp.text
        token = resp.json()["data"]["accessToken"]
        return {"Authorization": f"Bearer {token}"}

    return _get_headers


@pytest_asyncio.fixture
async def login_as(create_user, auth_header_factory):
    """Create a user of `role` and return (user, headers)."""

    async def _login_as(role: Role = Role.AUTHOR, email: str | None = None) -> tuple[User, dict[str, str]]:
        user, password = await create_user(role, email=email)
        return user, await auth_header_factory(user.email, password)

    return _login_as


@pytest_asyncio.fixture
async def submit_paper(client):
    """Submit a paper as the author behind `headers`; returns the response JSON."""

    async def _submit(headers: dict[str, str], category: str = "Computer Networks", **fields) -> dict:
        data = {"paperTitle": "Routing at the Edge", "authorName": "A. Author", "category": category, **fields}
        resp = await client.post(
            "/api/v1/papers",
            data=data,
            files={"pdf": ("paper.pdf", PDF_BYTES, "application/pdf")},
            headers=headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _submit


@pytest_asyncio.fixture
async def paper_in_review(client, login_as, submit_paper):
    """
    Factory fixture: an author's paper with `reviewers` reviewers assigned by an editor.
    Returns a dict with author/editor/reviewer (user, headers) pairs and the paper id.
    """

    async def _make(reviewers: int = 1) -> dict:
        author, author_headers = await login_as(Role.AUTHOR)
        submitted = await submit_paper(author_headers)
        editor, editor_headers = await login_as(Role.EDITOR)
        pairs = [await login_as(Role.REVIEWER) for _ in range(reviewers)]

        resp = await client.post(
            f"/api/v1/editor/papers/{submitted['submissionId']}/reviewers",
            json={"reviewerIds": [str(u.id) for u, _ in pairs]},
            headers=editor_headers,
        )
        assert resp.status_code == 200, resp.text
        return {
            "author": (author, author_headers),
            "editor": (editor, editor_headers),
            "reviewers": pairs,
            "paper": resp.json()["data"],
            "submissionId": submitted["submissionId"],
        }

    return _make


@pytest_asyncio.fixture
async def post_review(client):
    """Submit a complete review as the reviewer behind `headers`."""

    async def _post(headers: dict[str, str], paper_id: str, **overrides):
        body = {
            "comments": "Solid methodology, weak related work.",
            "commentsToAuthor": "Please extend section 2.",
            "overallRating": 4,
            "recommendation": "Accept",
            **overrides,
        }
        return await client.post(f"/api/v1/reviewer/papers/{paper_id}/review", json=body, headers=headers)

    return _post


@pytest_asyncio.fixture
async def accepted_paper(client, paper_in_review, post_review):
    """A paper reviewed by one reviewer and accepted by its editor."""

    async def _make() -> dict:
        ctx = await paper_in_review(reviewers=1)
        (_, reviewer_headers), = ctx["reviewers"]
        resp = await post_review(reviewer_headers, ctx["submissionId"])
        assert resp.status_code == 200, resp.text

        _, editor_headers = ctx["editor"]
        resp = await client.post(
            f"/api/v1/editor/papers/{ctx['submissionId']}/decision",
            json={"decision": "Accept", "comments": "Well done"},
            headers=editor_headers,
        )
        assert resp.status_code == 200, resp.text
        ctx["paper"] = resp.json()["data"]
        return ctx

    return _make
