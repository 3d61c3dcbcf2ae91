# confdesk/api/v1/routers/messages.py
"""
Message threads.

- Paper threads: author <-> assigned editor, one per submission
- Reviewer threads: editor <-> reviewer, one per (submission, reviewer)
- Support threads: author <-> conference admin, one per author
"""
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status

from confdesk.config import settings
from confdesk.core.policy import authorize, ensure, is_assigned_reviewer, is_paper_author, is_paper_editor
from confdesk.models.message import PaperMessage, ReviewerMessage, SupportMessage
from confdesk.models.paper import PaperSubmission
from confdesk.models.user import Role, User
from confdesk.schemas.message import MessageIn, ReviewerMessageIn
from confdesk.services import notifications, threads

router = APIRouter(prefix="/messages", tags=["messages"])


async def _paper(submission_id: str) -> PaperSubmission:
    paper = await PaperSubmission.find(submission_id)
    if not paper:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Paper not found")
    return paper


def _check_paper_party(user: User, paper: PaperSubmission) -> None:
    if user.role == Role.AUTHOR:
        ensure(is_paper_author(user, paper), "You can only message about your own paper")
    else:
        ensure(is_paper_editor(user, paper), "You are not the editor of this paper")


# ==============================================================================
# Paper threads (author <-> editor)
# ==============================================================================
@router.get("/papers")
async def list_paper_threads(user: User = Depends(authorize("message.paper"))):
    qs = PaperMessage.all().order_by("-last_message_at")
    if user.role == Role.AUTHOR:
        qs = qs.filter(author_email=user.email)
    elif user.role == Role.EDITOR:
        qs = qs.filter(editor_id=user.id)
    return {"success": True, "data": [t.to_dict() for t in await qs]}


@router.get("/papers/{submission_id}")
async def get_paper_thread(submission_id: str, user: User = Depends(authorize("message.paper"))):
    paper = await _paper(submission_id)
    _check_paper_party(user, paper)
    thread = await PaperMessage.get_or_none(submission_id=paper.submission_id)
    if not thread:
        return {"success": True, "data": {"submissionId": paper.submission_id, "messages": []}}
    return {"success": True, "data": thread.to_dict()}


@router.post("/papers/{submission_id}")
async def send_paper_message(
    submission_id: str,
    body: MessageIn,
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize("message.paper")),
):
    paper = await _paper(submission_id)
    _check_paper_party(user, paper)
    entry = threads.make_entry(user, body.message)

    thread, _ = await PaperMessage.get_or_create(
        submission_id=paper.submission_id,
        defaults={"paper_id": paper.id, "author_email": paper.email, "editor_id": paper.assigned_editor_id},
    )
    updates = {}
    if paper.assigned_editor_id and thread.editor_id != paper.assigned_editor_id:
        updates["editor_id"] = paper.assigned_editor_id
    thread = await threads.append(PaperMessage, thread.id, entry, **updates)

    if user.role == Role.AUTHOR:
        editor = await User.get_or_none(id=paper.assigned_editor_id) if paper.assigned_editor_id else None
        recipient = editor.email if editor else None
    else:
        recipient = paper.email
    await notifications.notify(
        background_tasks, notifications.new_message(recipient, paper.submission_id, user.username)
    )
    return {"success": True, "message": "Message sent", "data": thread.to_dict()}


# ==============================================================================
# Reviewer threads (editor <-> reviewer)
# ==============================================================================
async def _reviewer_for_thread(user: User, paper: PaperSubmission, reviewer_id: str | None) -> User:
    if user.role == Role.REVIEWER:
        ensure(is_assigned_reviewer(user, paper), "You are not assigned to review this paper")
        return user
    ensure(is_paper_editor(user, paper), "You are not the editor of this paper")
    try:
        reviewer = await User.get_or_none(id=uuid.UUID(str(reviewer_id)), role=Role.REVIEWER)
    except ValueError:
        reviewer = None
    if not reviewer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reviewer not found")
    if not is_assigned_reviewer(reviewer, paper):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Reviewer is not assigned to this paper")
    return reviewer


@router.get("/reviewer")
async def list_reviewer_threads(user: User = Depends(authorize("message.reviewer"))):
    qs = ReviewerMessage.all().order_by("-last_message_at")
    if user.role == Role.REVIEWER:
        qs = qs.filter(reviewer_id=user.id)
    elif user.role == Role.EDITOR:
        qs = qs.filter(editor_id=user.id)
    return {"success": True, "data": [t.to_dict() for t in await qs]}


@router.get("/reviewer/{submission_id}")
async def get_reviewer_thread(
    submission_id: str,
    reviewerId: str | None = Query(default=None),
    user: User = Depends(authorize("message.reviewer")),
):
    paper = await _paper(submission_id)
    reviewer = await _reviewer_for_thread(user, paper, reviewerId)
    thread = await ReviewerMessage.get_or_none(submission_id=paper.submission_id, reviewer_id=reviewer.id)
    if not thread:
        return {"success": True, "data": {"submissionId": paper.submission_id, "reviewerId": str(reviewer.id),
                                          "conversation": []}}
    return {"success": True, "data": thread.to_dict()}


@router.post("/reviewer/{submission_id}")
async def send_reviewer_message(
    submission_id: str,
    body: ReviewerMessageIn,
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize("message.reviewer")),
):
    paper = await _paper(submission_id)
    reviewer = await _reviewer_for_thread(user, paper, body.reviewerId)
    entry = threads.make_entry(user, body.message)

    a = paper.assignment_for(reviewer.id)
    thread, _ = await ReviewerMessage.get_or_create(
        submission_id=paper.submission_id,
        reviewer_id=reviewer.id,
        defaults={"editor_id": paper.assigned_editor_id, "review_id": a.get("review") if a else None},
    )
    updates = {}
    if user.role != Role.REVIEWER and thread.editor_id is None:
        updates["editor_id"] = user.id
    thread = await threads.append(ReviewerMessage, thread.id, entry, field="conversation", **updates)

    if user.role == Role.REVIEWER:
        editor = await User.get_or_none(id=thread.editor_id) if thread.editor_id else None
        recipient = editor.email if editor else None
    else:
        recipient = reviewer.email
    await notifications.notify(
        background_tasks, notifications.new_message(recipient, paper.submission_id, user.username)
    )
    return {"success": True, "message": "Message sent", "data": thread.to_dict()}


# ==============================================================================
# Support threads (author <-> admin)
# ==============================================================================
async def _support_thread(user: User) -> SupportMessage:
    thread, _ = await SupportMessage.get_or_create(
        author_id=user.id,
        defaults={"author_email": user.email, "author_name": user.username},
    )
    return thread


@router.get("/support")
async def get_support_thread(user: User = Depends(authorize("message.support.author"))):
    """The author's support thread; created empty on first read."""
    thread = await _support_thread(user)
    return {"success": True, "data": thread.to_dict()}


@router.post("/support")
async def send_support_message(
    body: MessageIn,
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize("message.support.author")),
):
    entry = threads.make_entry(user, body.message)
    thread = await _support_thread(user)
    thread = await threads.append(SupportMessage, thread.id, entry, status="Open")
    await notifications.notify(
        background_tasks, notifications.new_message(settings.admin_notify_email, None, user.username)
    )
    return {"success": True, "message": "Message sent", "data": thread.to_dict()}


@router.get("/support/all")
async def list_support_threads(
    status_filter: str | None = Query(default=None, alias="status"),
    user: User = Depends(authorize("message.support.admin")),
):
    qs = SupportMessage.all().order_by("-last_message_at")
    if status_filter:
        qs = qs.filter(status=status_filter)
    return {"success": True, "data": [t.to_dict() for t in await qs]}


@router.post("/support/{thread_id}/reply")
async def reply_support(
    thread_id: str,
    body: MessageIn,
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize("message.support.admin")),
):
    entry = threads.make_entry(user, body.message)
    try:
        pk = uuid.UUID(thread_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thread not found")
    thread = await threads.append(SupportMessage, pk, entry, status="Replied")
    await notifications.notify(
        background_tasks, notifications.new_message(thread.author_email, None, user.username)
    )
    return {"success": True, "message": "Reply sent", "data": thread.to_dict()}
