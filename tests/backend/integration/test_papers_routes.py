import pytest

from confdesk.api.v1.routers import papers as papers_router
from confdesk.core.ids import MAX_ID_ATTEMPTS
from confdesk.models.outbox import OutboxEntry
from confdesk.models.paper import PaperSubmission, UserSubmission
from confdesk.models.user import Role


pytestmark = pytest.mark.asyncio

PDF = ("paper.pdf", b"%PDF-1.4 revised", "application/pdf")


async def test_submit_paper(client, login_as, submit_paper, sent_emails, uploaded_files):
    author, headers = await login_as(Role.AUTHOR)
    body = await submit_paper(headers, abstract="We route packets.")

    assert body["success"] is True
    assert body["submissionId"] == "CO001"
    assert body["bookingId"].startswith("BK")
    details = body["paperDetails"]
    assert details["status"] == "Submitted"
    assert details["email"] == author.email
    assert details["versions"][0]["version"] == 1
    assert len(uploaded_files) == 1

    paper = await PaperSubmission.get(submission_id="CO001")
    assert paper.assigned_editor_id is None
    booking = await UserSubmission.get(email=author.email)
    assert booking.booking_id == body["bookingId"]

    # Confirmation mail to the author went through the outbox
    assert author.email in [to for to, _, _ in sent_emails]
    assert await OutboxEntry.filter(kind="email", status="sent").count() >= 1


async def test_second_submission_is_rejected(client, login_as, submit_paper):
    _, headers = await login_as(Role.AUTHOR)
    first = await submit_paper(headers)

    resp = await client.post(
        "/api/v1/papers",
        data={"paperTitle": "Another", "authorName": "A", "category": "Computer Networks"},
        files={"pdf": PDF},
        headers=headers,
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["existingSubmission"] == {"submissionId": first["submissionId"], "bookingId": first["bookingId"]}
    assert await PaperSubmission.all().count() == 1


async def test_submission_ids_are_sequential_per_category(client, login_as, submit_paper):
    ids = []
    for category in ("Computer Networks", "Computer Vision", "Machine Learning"):
        _, headers = await login_as(Role.AUTHOR)
        ids.append((await submit_paper(headers, category=category))["submissionId"])
    assert ids == ["CO001", "CO002", "MA001"]


async def test_submission_id_collision_regenerates_id(client, login_as, submit_paper, monkeypatch):
    _, first_headers = await login_as(Role.AUTHOR)
    assert (await submit_paper(first_headers))["submissionId"] == "CO001"

    calls = []
    real_next_id = papers_router.next_submission_id

    async def _racing_next_id(category):
        calls.append(category)
        # The first read misses a concurrent insert of CO001
        if len(calls) == 1:
            return "CO001"
        return await real_next_id(category)

    monkeypatch.setattr(papers_router, "next_submission_id", _racing_next_id)
    _, second_headers = await login_as(Role.AUTHOR)
    second = await submit_paper(second_headers)

    assert second["submissionId"] == "CO002"
    assert len(calls) == 2
    assert await PaperSubmission.filter(submission_id="CO001").count() == 1
    assert await UserSubmission.all().count() == 2


async def test_submission_id_retries_are_bounded(client, login_as, submit_paper, monkeypatch, uploaded_files):
    _, first_headers = await login_as(Role.AUTHOR)
    await submit_paper(first_headers)

    calls = []

    async def _always_taken(category):
        calls.append(category)
        return "CO001"

    monkeypatch.setattr(papers_router, "next_submission_id", _always_taken)
    author, headers = await login_as(Role.AUTHOR)
    resp = await client.post(
        "/api/v1/papers",
        data={"paperTitle": "Late", "authorName": "B", "category": "Computer Networks"},
        files={"pdf": PDF},
        headers=headers,
    )
    assert resp.status_code == 409
    assert resp.json()["success"] is False
    assert len(calls) == MAX_ID_ATTEMPTS
    assert await UserSubmission.get_or_none(email=author.email) is None
    # Only the first paper's file is left in the store
    assert len(uploaded_files) == 1


async def test_concurrent_submission_by_same_author(client, login_as, monkeypatch, uploaded_files):
    author, headers = await login_as(Role.AUTHOR)
    real_next_id = papers_router.next_submission_id

    async def _other_tab_wins(category):
        # The author's other request commits between the duplicate check and the insert
        if not await UserSubmission.filter(email=author.email).exists():
            await UserSubmission.create(email=author.email, submission_id="CO900", booking_id="BK0000000001")
        return await real_next_id(category)

    monkeypatch.setattr(papers_router, "next_submission_id", _other_tab_wins)
    resp = await client.post(
        "/api/v1/papers",
        data={"paperTitle": "Twice", "authorName": "A", "category": "Computer Networks"},
        files={"pdf": PDF},
        headers=headers,
    )
    assert resp.status_code == 400
    assert resp.json()["existingSubmission"] == {"submissionId": "CO900", "bookingId": "BK0000000001"}
    assert await PaperSubmission.all().count() == 0
    assert uploaded_files == {}


async def test_submit_validation(client, login_as):
    _, headers = await login_as(Role.AUTHOR)

    no_pdf = await client.post(
        "/api/v1/papers",
        data={"paperTitle": "T", "authorName": "A", "category": "Computer Networks"},
        headers=headers,
    )
    assert no_pdf.status_code == 400

    not_pdf = await client.post(
        "/api/v1/papers",
        data={"paperTitle": "T", "authorName": "A", "category": "Computer Networks"},
        files={"pdf": ("notes.txt", b"hello", "text/plain")},
        headers=headers,
    )
    assert not_pdf.status_code == 400
    assert not_pdf.json()["message"] == "Only PDF files are allowed"

    missing = await client.post(
        "/api/v1/papers",
        data={"authorName": "A"},
        files={"pdf": PDF},
        headers=headers,
    )
    assert missing.status_code == 400
    assert "paperTitle" in missing.json()["message"]
    assert await PaperSubmission.all().count() == 0


async def test_only_authors_submit(client, login_as):
    _, headers = await login_as(Role.REVIEWER)
    resp = await client.post(
        "/api/v1/papers",
        data={"paperTitle": "T", "authorName": "A", "category": "Computer Networks"},
        files={"pdf": PDF},
        headers=headers,
    )
    assert resp.status_code == 403
    assert resp.json()["message"] == "Access denied. Required role: Author"


async def test_my_submission_and_public_status(client, login_as, submit_paper):
    _, headers = await login_as(Role.AUTHOR)
    submitted = await submit_paper(headers)

    mine = await client.get("/api/v1/papers/mine", headers=headers)
    assert mine.status_code == 200
    data = mine.json()["data"]
    assert data["submissionId"] == submitted["submissionId"]
    assert data["bookingId"] == submitted["bookingId"]
    assert "reviewAssignments" not in data

    public = await client.get(f"/api/v1/papers/status/{submitted['submissionId'].lower()}")
    assert public.status_code == 200
    assert public.json()["data"]["status"] == "Submitted"

    assert (await client.get("/api/v1/papers/status/ZZ999")).status_code == 404


async def test_edit_and_reupload(client, login_as, submit_paper, uploaded_files):
    _, headers = await login_as(Role.AUTHOR)
    sid = (await submit_paper(headers))["submissionId"]

    edit = await client.put(f"/api/v1/papers/{sid}", data={"paperTitle": "Routing at the Far Edge"}, headers=headers)
    assert edit.status_code == 200
    assert edit.json()["data"]["paperTitle"] == "Routing at the Far Edge"

    nothing = await client.put(f"/api/v1/papers/{sid}", data={}, headers=headers)
    assert nothing.status_code == 400

    reupload = await client.post(f"/api/v1/papers/{sid}/reupload", files={"pdf": PDF}, headers=headers)
    assert reupload.status_code == 200
    assert reupload.json()["version"] == 2
    versions = reupload.json()["data"]["versions"]
    assert [v["version"] for v in versions] == [1, 2]

    _, other = await login_as(Role.AUTHOR)
    forbidden = await client.put(f"/api/v1/papers/{sid}", data={"paperTitle": "Mine now"}, headers=other)
    assert forbidden.status_code == 403


async def test_staff_listing_is_scoped(client, login_as, submit_paper):
    _, author_headers = await login_as(Role.AUTHOR)
    sid = (await submit_paper(author_headers))["submissionId"]
    admin, admin_headers = await login_as(Role.ADMIN)
    editor, editor_headers = await login_as(Role.EDITOR)
    other_editor, other_headers = await login_as(Role.EDITOR)

    # Unassigned papers are visible to every editor
    listing = await client.get("/api/v1/papers", headers=other_headers)
    assert [p["submissionId"] for p in listing.json()["data"]] == [sid]

    resp = await client.post(f"/api/v1/admin/papers/{sid}/editor", json={"editorId": str(editor.id)},
                             headers=admin_headers)
    assert resp.status_code == 200

    assert (await client.get("/api/v1/papers", headers=other_headers)).json()["data"] == []
    assert (await client.get(f"/api/v1/papers/{sid}", headers=other_headers)).status_code == 403

    own = await client.get("/api/v1/papers", headers=editor_headers, params={"status": "Editor Assigned"})
    assert own.json()["total"] == 1
    bad_status = await client.get("/api/v1/papers", headers=editor_headers, params={"status": "Lost"})
    assert bad_status.status_code == 400

    assert (await client.get("/api/v1/papers", headers=author_headers)).status_code == 403


async def test_revision_round_trip(client, paper_in_review, post_review, monkeypatch):
    from confdesk.config import settings
    monkeypatch.setattr(settings, "min_reviews_for_revision", 1)

    ctx = await paper_in_review(reviewers=1)
    sid = ctx["submissionId"]
    _, author_headers = ctx["author"]
    _, editor_headers = ctx["editor"]
    (_, reviewer_headers), = ctx["reviewers"]

    # Revisions can only follow a revision request
    early = await client.post(f"/api/v1/papers/{sid}/revision", files={"pdf": PDF}, headers=author_headers)
    assert early.status_code == 409
    assert early.json()["currentStatus"] == "Under Review"

    assert (await post_review(reviewer_headers, sid, recommendation="Major Revision")).status_code == 200
    req = await client.post(
        f"/api/v1/editor/papers/{sid}/revision-request",
        json={"message": "Please add experiments", "deadline": "2099-01-31"},
        headers=editor_headers,
    )
    assert req.status_code == 200
    assert req.json()["data"]["status"] == "Revision Required"

    rev = await client.post(
        f"/api/v1/papers/{sid}/revision",
        data={"authorResponse": "Added section 5"},
        files={"pdf": PDF},
        headers=author_headers,
    )
    assert rev.status_code == 200
    data = rev.json()["data"]
    assert data["status"] == "Revised Submitted"
    assert data["revisionCount"] == 1
    assert data["revisionRequests"][0]["status"] == "Submitted"
    assert data["revisionRequests"][0]["authorResponse"] == "Added section 5"
    assert len(data["versions"]) == 2


async def test_revision_keeps_highlighted_and_response_files(client, paper_in_review, post_review, monkeypatch,
                                                             uploaded_files):
    from confdesk.config import settings
    monkeypatch.setattr(settings, "min_reviews_for_revision", 1)

    ctx = await paper_in_review(reviewers=1)
    sid = ctx["submissionId"]
    _, author_headers = ctx["author"]
    _, editor_headers = ctx["editor"]
    (_, reviewer_headers), = ctx["reviewers"]
    await post_review(reviewer_headers, sid, recommendation="Minor Revision")
    await client.post(f"/api/v1/editor/papers/{sid}/revision-request", json={"message": "Fix typos"},
                      headers=editor_headers)

    not_pdf = await client.post(
        f"/api/v1/papers/{sid}/revision",
        files={"pdf": PDF, "responsePdf": ("letter.docx", b"PK\x03\x04", "application/msword")},
        headers=author_headers,
    )
    assert not_pdf.status_code == 400
    assert len(uploaded_files) == 1

    rev = await client.post(
        f"/api/v1/papers/{sid}/revision",
        files={
            "pdf": PDF,
            "highlightedPdf": ("highlighted.pdf", b"%PDF-1.4 marked", "application/pdf"),
            "responsePdf": ("letter.pdf", b"%PDF-1.4 letter", "application/pdf"),
        },
        headers=author_headers,
    )
    assert rev.status_code == 200
    latest = rev.json()["data"]["versions"][-1]
    assert latest["version"] == 2
    assert latest["pdfFileName"] == "paper.pdf"
    assert latest["highlightedPdf"]["fileName"] == "highlighted.pdf"
    assert latest["responsePdf"]["fileName"] == "letter.pdf"
    assert latest["responsePdf"]["publicId"] in uploaded_files
    assert "highlightedPdf" not in rev.json()["data"]["versions"][0]


async def test_author_reads_anonymous_reviewer_comments(client, paper_in_review, post_review, monkeypatch,
                                                        sent_emails):
    from confdesk.config import settings
    monkeypatch.setattr(settings, "min_reviews_for_revision", 2)

    ctx = await paper_in_review(reviewers=2)
    sid = ctx["submissionId"]
    author, author_headers = ctx["author"]
    _, editor_headers = ctx["editor"]
    (first, first_headers), (second, second_headers) = ctx["reviewers"]

    await post_review(first_headers, sid, commentsToAuthor="Tighten the evaluation.", strengths="Clear model",
                      weaknesses="Small dataset", comments="Confidential: borderline", recommendation="Major Revision")
    await post_review(second_headers, sid, commentsToAuthor="Cite prior routing work.", overallRating=3,
                      recommendation="Minor Revision")

    # Nothing is shown before the editor acts
    before = (await client.get("/api/v1/papers/mine", headers=author_headers)).json()["data"]
    assert before["reviewerFeedback"] == []

    resp = await client.post(f"/api/v1/editor/papers/{sid}/revision-request",
                             json={"message": "Address both reviews"}, headers=editor_headers)
    assert resp.status_code == 200

    mine = (await client.get("/api/v1/papers/mine", headers=author_headers)).json()["data"]
    request = mine["revisionRequests"][0]
    assert [c["commentsToAuthor"] for c in request["reviewerComments"]] == [
        "Tighten the evaluation.", "Cite prior routing work."
    ]
    assert request["reviewerComments"][0]["reviewer"] == "Reviewer 1"
    assert request["reviewerComments"][0]["strengths"] == "Clear model"
    assert request["reviewerComments"][1]["overallRating"] == 3
    assert mine["reviewerFeedback"] == request["reviewerComments"]

    exposed = repr(mine)
    for reviewer in (first, second):
        assert reviewer.email not in exposed
        assert str(reviewer.id) not in exposed
    assert "Confidential" not in exposed

    mail = next(html for to, subject, html in sent_emails if to == author.email and "Revision requested" in subject)
    assert "Tighten the evaluation." in mail
    assert "Weaknesses: Small dataset" in mail
    assert first.email not in mail


async def test_decision_mail_carries_reviewer_comments(client, accepted_paper, sent_emails):
    ctx = await accepted_paper()
    author, author_headers = ctx["author"]
    (reviewer, _), = ctx["reviewers"]

    mail = next(html for to, subject, html in sent_emails if to == author.email and "Decision on" in subject)
    assert "Please extend section 2." in mail
    assert reviewer.username not in mail

    mine = (await client.get("/api/v1/papers/mine", headers=author_headers)).json()["data"]
    assert mine["finalDecision"] == "Accept"
    assert mine["reviewerFeedback"][0]["commentsToAuthor"] == "Please extend section 2."
