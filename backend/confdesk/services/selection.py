# confdesk/services/selection.py
"""
Copyright approval fan-out: keep one ConferenceSelectedUser per submission.

Runs as the `selected_user` outbox handler, so a failure is retried by the
outbox instead of being lost.
"""
import datetime as dt

from confdesk.core import outbox
from confdesk.models.copyright import ConferenceSelectedUser, Copyright
from confdesk.models.paper import PaperSubmission
from confdesk.models.payment import PaymentDoneFinalUser
from confdesk.models.user import User


def _iso(value: dt.datetime | None) -> str | None:
    return value.isoformat() if value else None


async def build_payload(copyright: Copyright, paper: PaperSubmission) -> dict:
    editor_email = None
    if paper.assigned_editor_id:
        editor = await User.get_or_none(id=paper.assigned_editor_id)
        editor_email = editor.email if editor else None

    reviewer_ids = list(paper.assigned_reviewers or [])
    reviewers = await User.filter(id__in=reviewer_ids) if reviewer_ids else []

    return {
        "submissionId": paper.submission_id,
        "authorEmail": copyright.author_email,
        "authorName": copyright.author_name,
        "paperTitle": paper.title,
        "paperUrl": paper.pdf_url or "",
        "copyrightUrl": copyright.form_url or "",
        "category": paper.category,
        "abstract": paper.abstract,
        "editorEmail": editor_email,
        "reviewers": [{"id": str(r.id), "name": r.username, "email": r.email} for r in reviewers],
        "revisionRounds": paper.revision_count,
        "paperSubmittedAt": _iso(paper.created_at),
        "copyrightSubmittedAt": _iso(copyright.submitted_at),
    }


@outbox.handler("selected_user")
async def upsert_selected_user(payload: dict) -> ConferenceSelectedUser:
    submission_id = payload["submissionId"]
    final_user = await PaymentDoneFinalUser.get_or_none(submission_id=submission_id)

    submitted_at = payload.get("paperSubmittedAt")
    copyright_at = payload.get("copyrightSubmittedAt")
    defaults = {
        "author_email": payload["authorEmail"],
        "author_name": payload["authorName"],
        "paper_title": payload["paperTitle"],
        "paper_url": payload.get("paperUrl") or "",
        "copyright_url": payload.get("copyrightUrl") or "",
        "category": payload.get("category"),
        "abstract": payload.get("abstract"),
        "editor_email": payload.get("editorEmail"),
        "reviewers": payload.get("reviewers") or [],
        "revision_rounds": payload.get("revisionRounds") or 0,
        "registration_number": final_user.registration_number if final_user else None,
        "paper_submitted_at": dt.datetime.fromisoformat(submitted_at) if submitted_at else None,
        "copyright_submitted_at": dt.datetime.fromisoformat(copyright_at) if copyright_at else None,
        "status": "Confirmed",
    }
    row, _ = await ConferenceSelectedUser.update_or_create(defaults=defaults, submission_id=submission_id)
    return row
