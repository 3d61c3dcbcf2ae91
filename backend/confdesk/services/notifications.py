# confdesk/services/notifications.py
"""
Notification mails.

Builders return plain {to, subject, html} payloads; `notify` records them as
outbox entries (inside the caller's transaction when `using_db` is given)
and schedules delivery as a background task that runs after the response.
"""
import html as html_lib
import logging

from fastapi import BackgroundTasks

from confdesk.config import settings
from confdesk.core import outbox

logger = logging.getLogger(__name__)


def _mail(to: str | None, subject: str, *paragraphs: str) -> dict:
    body = "".join(f"<p>{p}</p>" for p in paragraphs if p)
    footer = f"<p>Regards,<br>{html_lib.escape(settings.conference_name)} Team</p>"
    return {"to": to, "subject": f"{settings.conference_name}: {subject}", "html": body + footer}


def _e(value) -> str:
    return html_lib.escape(str(value or ""))


async def notify(background_tasks: BackgroundTasks | None, *mails: dict, using_db=None) -> list:
    entries = []
    for m in mails:
        if not m.get("to"):
            continue
        entries.append(await outbox.enqueue("email", m, using_db=using_db))
    if entries and background_tasks is not None:
        background_tasks.add_task(outbox.deliver_many, [e.id for e in entries])
    return entries


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------
def verification(user, token: str) -> dict:
    link = f"{settings.frontend_url}/verify-email?token={token}&email={user.email}"
    return _mail(
        user.email, "Verify your email",
        f"Hello {_e(user.username)},",
        f'Please confirm your address by opening <a href="{link}">this link</a>. '
        f"It expires in {settings.verification_ttl_hours} hours.",
    )


def reset_otp(user, otp: str) -> dict:
    return _mail(
        user.email, "Password reset code",
        f"Your password reset code is <b>{otp}</b>.",
        f"It is valid for {settings.reset_otp_ttl_minutes} minutes.",
    )


def staff_credentials(user, password: str) -> dict:
    return _mail(
        user.email, f"Your {user.role.value} account",
        f"An account with role {user.role.value} was created for you.",
        f"Username: <b>{_e(user.username)}</b><br>Email: <b>{_e(user.email)}</b><br>"
        f"Temporary password: <b>{_e(password)}</b>",
        f'Sign in at <a href="{settings.frontend_url}/login">{settings.frontend_url}/login</a> and change it.',
    )


# ---------------------------------------------------------------------------
# Papers
# ---------------------------------------------------------------------------
def submission_received(paper, booking_id: str) -> dict:
    return _mail(
        paper.email, f"Submission received ({paper.submission_id})",
        f"Dear {_e(paper.author_name)},",
        f"We received your paper <b>{_e(paper.title)}</b>.",
        f"Submission ID: <b>{paper.submission_id}</b><br>Booking ID: <b>{booking_id}</b>",
    )


def admin_new_submission(paper) -> dict:
    return _mail(
        settings.admin_notify_email, f"New submission {paper.submission_id}",
        f"{_e(paper.author_name)} ({_e(paper.email)}) submitted <b>{_e(paper.title)}</b> "
        f"in category {_e(paper.category)}.",
    )


def editor_assigned(editor, paper) -> dict:
    return _mail(
        editor.email, f"Paper assigned: {paper.submission_id}",
        f"Dear {_e(editor.username)},",
        f"You are the editor of <b>{_e(paper.title)}</b> ({paper.submission_id}).",
    )


def reviewer_assigned(reviewer, paper, deadline: str) -> dict:
    return _mail(
        reviewer.email, f"Review request: {paper.submission_id}",
        f"Dear {_e(reviewer.username)},",
        f"You have been asked to review <b>{_e(paper.title)}</b> ({paper.submission_id}).",
        f"Please submit your review by {deadline[:10]}.",
    )


def reviewer_reminder(reviewer, paper, deadline: str | None) -> dict:
    return _mail(
        reviewer.email, f"Reminder: review for {paper.submission_id}",
        f"Dear {_e(reviewer.username)},",
        f"Your review of <b>{_e(paper.title)}</b> is still outstanding"
        + (f" (deadline {deadline[:10]})." if deadline else "."),
    )


def review_received(editor, paper, reviewer_name: str) -> dict:
    return _mail(
        editor.email, f"Review submitted for {paper.submission_id}",
        f"{_e(reviewer_name)} submitted a review for <b>{_e(paper.title)}</b>.",
    )


def _feedback(feedback: list[dict] | None) -> str:
    """Anonymous reviewer comments (see models.review.author_feedback)."""
    items = []
    for f in feedback or []:
        lines = [f"<b>{_e(f['reviewer'])}</b> (round {f['round']}, rating {f['overallRating']}/5, "
                 f"{_e(f['recommendation'])})"]
        if f.get("commentsToAuthor"):
            lines.append(_e(f["commentsToAuthor"]))
        if f.get("strengths"):
            lines.append(f"Strengths: {_e(f['strengths'])}")
        if f.get("weaknesses"):
            lines.append(f"Weaknesses: {_e(f['weaknesses'])}")
        items.append(f"<li>{'<br>'.join(lines)}</li>")
    return f"Reviewer comments:<ul>{''.join(items)}</ul>" if items else ""


def decision(paper, decision_value: str, comments: str | None, feedback: list[dict] | None = None) -> dict:
    return _mail(
        paper.email, f"Decision on {paper.submission_id}",
        f"Dear {_e(paper.author_name)},",
        f"The decision on <b>{_e(paper.title)}</b> is: <b>{_e(decision_value)}</b>.",
        _e(comments) if comments else "",
        _feedback(feedback),
    )


def revision_requested(paper, message: str, deadline: str | None, feedback: list[dict] | None = None) -> dict:
    return _mail(
        paper.email, f"Revision requested for {paper.submission_id}",
        f"Dear {_e(paper.author_name)},",
        f"The editor requested a revision of <b>{_e(paper.title)}</b>:",
        _e(message),
        _feedback(feedback),
        f"Please upload the revised version by {deadline[:10]}." if deadline else "",
    )


def revision_submitted(editor, paper) -> dict:
    return _mail(
        editor.email, f"Revised paper uploaded: {paper.submission_id}",
        f"{_e(paper.author_name)} uploaded revision {paper.revision_count} of <b>{_e(paper.title)}</b>.",
    )


def new_message(to: str | None, submission_id: str | None, sender_name: str) -> dict:
    about = f" about {submission_id}" if submission_id else ""
    return _mail(to, f"New message{about}", f"{_e(sender_name)} sent you a new message{about}.")


# ---------------------------------------------------------------------------
# Copyright / payments
# ---------------------------------------------------------------------------
def copyright_reviewed(record, status: str, comment: str | None) -> dict:
    return _mail(
        record.author_email, f"Copyright form {status.lower()} ({record.submission_id})",
        f"Dear {_e(record.author_name)},",
        f"Your copyright form for <b>{_e(record.paper_title)}</b> was {status.lower()}.",
        _e(comment) if comment else "",
    )


def payment_verified(registration, registration_number: str) -> dict:
    return _mail(
        registration.author_email, "Registration confirmed",
        f"Dear {_e(registration.author_name)},",
        f"Your payment for <b>{_e(registration.paper_title)}</b> was verified.",
        f"Registration number: <b>{registration_number}</b>",
    )


def payment_rejected(registration, reason: str) -> dict:
    return _mail(
        registration.author_email, "Payment could not be verified",
        f"Dear {_e(registration.author_name)},",
        f"Your payment for <b>{_e(registration.paper_title)}</b> was rejected: {_e(reason)}",
        "Please submit the payment details again.",
    )
