import pytest

from confdesk.models.message import PaperMessage, SupportMessage
from confdesk.models.user import Role


pytestmark = pytest.mark.asyncio


async def test_paper_thread_between_author_and_editor(client, paper_in_review, sent_emails):
    ctx = await paper_in_review(reviewers=1)
    sid = ctx["submissionId"]
    author, author_headers = ctx["author"]
    editor, editor_headers = ctx["editor"]

    resp = await client.post(f"/api/v1/messages/papers/{sid}", json={"message": "Any news?"}, headers=author_headers)
    assert resp.status_code == 200
    assert editor.email in [to for to, _, _ in sent_emails]

    reply = await client.post(f"/api/v1/messages/papers/{sid}", json={"message": "Reviews are in progress."},
                              headers=editor_headers)
    assert reply.status_code == 200
    messages = reply.json()["data"]["messages"]
    assert [(m["sender"], m["message"]) for m in messages] == [
        ("Author", "Any news?"),
        ("Editor", "Reviews are in progress."),
    ]
    assert await PaperMessage.filter(submission_id=sid).count() == 1

    thread = await client.get(f"/api/v1/messages/papers/{sid}", headers=author_headers)
    assert len(thread.json()["data"]["messages"]) == 2

    listing = await client.get("/api/v1/messages/papers", headers=editor_headers)
    assert [t["submissionId"] for t in listing.json()["data"]] == [sid]


async def test_paper_thread_access(client, paper_in_review, login_as):
    ctx = await paper_in_review(reviewers=1)
    sid = ctx["submissionId"]
    _, author_headers = ctx["author"]
    _, other_author = await login_as(Role.AUTHOR)
    _, other_editor = await login_as(Role.EDITOR)
    (_, reviewer_headers), = ctx["reviewers"]

    assert (await client.post(f"/api/v1/messages/papers/{sid}", json={"message": "hi"},
                              headers=other_author)).status_code == 403
    assert (await client.get(f"/api/v1/messages/papers/{sid}", headers=other_editor)).status_code == 403
    assert (await client.get(f"/api/v1/messages/papers/{sid}", headers=reviewer_headers)).status_code == 403
    assert (await client.post(f"/api/v1/messages/papers/{sid}", json={"message": "   "},
                              headers=author_headers)).status_code == 400
    assert (await client.get("/api/v1/messages/papers/ZZ404", headers=author_headers)).status_code == 404


async def test_reviewer_thread(client, paper_in_review):
    ctx = await paper_in_review(reviewers=1)
    sid = ctx["submissionId"]
    _, editor_headers = ctx["editor"]
    (reviewer, reviewer_headers), = ctx["reviewers"]

    sent = await client.post(f"/api/v1/messages/reviewer/{sid}",
                             json={"message": "Please check section 3", "reviewerId": str(reviewer.id)},
                             headers=editor_headers)
    assert sent.status_code == 200

    answer = await client.post(f"/api/v1/messages/reviewer/{sid}", json={"message": "Will do"},
                               headers=reviewer_headers)
    assert answer.status_code == 200
    assert [m["sender"] for m in answer.json()["data"]["conversation"]] == ["Editor", "Reviewer"]

    thread = await client.get(f"/api/v1/messages/reviewer/{sid}", params={"reviewerId": str(reviewer.id)},
                              headers=editor_headers)
    assert len(thread.json()["data"]["conversation"]) == 2

    # Authors are not part of reviewer threads
    _, author_headers = ctx["author"]
    assert (await client.get(f"/api/v1/messages/reviewer/{sid}", headers=author_headers)).status_code == 403


async def test_support_thread(client, login_as, sent_emails, monkeypatch):
    from confdesk.config import settings
    monkeypatch.setattr(settings, "admin_notify_email", "office@example.com")

    author, author_headers = await login_as(Role.AUTHOR)
    _, admin_headers = await login_as(Role.ADMIN)

    first_read = await client.get("/api/v1/messages/support", headers=author_headers)
    assert first_read.status_code == 200
    assert first_read.json()["data"]["messages"] == []

    sent = await client.post("/api/v1/messages/support", json={"message": "Invoice please"}, headers=author_headers)
    thread_id = sent.json()["data"]["id"]
    assert sent.json()["data"]["status"] == "Open"
    assert "office@example.com" in [to for to, _, _ in sent_emails]

    inbox = await client.get("/api/v1/messages/support/all", headers=admin_headers, params={"status": "Open"})
    assert [t["id"] for t in inbox.json()["data"]] == [thread_id]

    reply = await client.post(f"/api/v1/messages/support/{thread_id}/reply", json={"message": "Sent"},
                              headers=admin_headers)
    assert reply.status_code == 200
    assert reply.json()["data"]["status"] == "Replied"
    assert author.email in [to for to, _, _ in sent_emails]

    assert await SupportMessage.filter(author_id=author.id).count() == 1
    assert (await client.get("/api/v1/messages/support/all", headers=author_headers)).status_code == 403
    assert (await client.post("/api/v1/messages/support/not-a-thread/reply", json={"message": "x"},
                              headers=admin_headers)).status_code == 404
