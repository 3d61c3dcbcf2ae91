# confdesk/api/v1/routers/copyright.py
"""
Copyright forms of accepted papers and the selected-users fan-out.

Approving a form records a `selected_user` outbox entry in the same
transaction as the status change and delivers it right after commit. A
failed upsert stays in the outbox for the next drain instead of failing the
approval.
"""
import logging
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Query, UploadFile, status
from tortoise.exceptions import IntegrityError
from tortoise.transactions import in_transaction

from confdesk.core import outbox, storage
from confdesk.core.policy import authorize
from confdesk.core.security import utc_now
from confdesk.core.workflow import PaperStatus
from confdesk.models.copyright import ConferenceSelectedUser, Copyright
from confdesk.models.paper import PaperSubmission
from confdesk.models.user import Role, User
from confdesk.schemas.message import MessageIn
from confdesk.schemas.payment import CopyrightReviewIn
from confdesk.services import notifications, selection, threads

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/copyright", tags=["copyright"])

COPYRIGHT_FOLDER = "confdesk/copyright"
SELECTABLE = (PaperStatus.ACCEPTED, PaperStatus.PUBLISHED)


async def _ensure_copyright(paper: PaperSubmission) -> Copyright:
    """Get or create the single copyright row of an accepted paper."""
    defaults = {
        "paper_id": paper.id,
        "author_email": paper.email,
        "author_name": paper.author_name,
        "paper_title": paper.title,
    }
    try:
        record, _ = await Copyright.get_or_create(submission_id=paper.submission_id, defaults=defaults)
    except IntegrityError:
        # Lost the race with a concurrent dashboard load
        record = await Copyright.get(submission_id=paper.submission_id)
    return record


async def _author_copyright(submission_id: str, user: User) -> Copyright:
    paper = await PaperSubmission.find(submission_id)
    if not paper or paper.email != user.email:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Paper not found")
    if PaperStatus(paper.status) not in SELECTABLE:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Copyright forms are only needed for accepted papers")
    return await _ensure_copyright(paper)


@router.get("/dashboard")
async def author_dashboard(user: User = Depends(authorize("copyright.author"))):
    papers = await PaperSubmission.filter(email=user.email, status__in=list(SELECTABLE)).order_by("-created_at")
    items = []
    for paper in papers:
        record = await _ensure_copyright(paper)
        items.append({**record.to_dict(), "paperStatus": PaperStatus(paper.status).value, "pdfUrl": paper.pdf_url})
    return {"success": True, "data": items}


@router.post("/{submission_id}/upload")
async def upload_form(
    submission_id: str,
    copyrightFormUrl: str | None = Form(default=None),
    file: UploadFile | None = File(default=None),
    user: User = Depends(authorize("copyright.author")),
):
    record = await _author_copyright(submission_id, user)
    if record.status == "Approved":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Copyright form is already approved")

    if file is not None and file.filename:
        content = await file.read()
        resource_type = "image" if (file.content_type or "").startswith("image/") else "raw"
        try:
            uploaded = await storage.upload_file(content, file.filename, COPYRIGHT_FOLDER, resource_type)
        except storage.StorageError:
            logger.exception("[copyright] upload for %s failed", record.submission_id)
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="File upload failed")
        await storage.delete_quietly(record.form_public_id)
        record.form_url = uploaded["url"]
        record.form_public_id = uploaded["publicId"]
    elif copyrightFormUrl and copyrightFormUrl.strip():
        record.form_url = copyrightFormUrl.strip()
        record.form_public_id = None
    else:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A copyright form file or URL is required")

    record.status = "Submitted"
    record.submitted_at = utc_now()
    await record.save(update_fields=["form_url", "form_public_id", "status", "submitted_at", "updated_at"])
    return {"success": True, "message": "Copyright form submitted", "data": record.to_dict()}


@router.post("/{submission_id}/messages")
async def add_copyright_message(
    submission_id: str,
    body: MessageIn,
    user: User = Depends(authorize("copyright.message")),
):
    entry = threads.make_entry(user, body.message)
    if user.role == Role.AUTHOR:
        record = await _author_copyright(submission_id, user)
    else:
        record = await Copyright.get_or_none(submission_id=submission_id.strip().upper())
        if not record:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Copyright record not found")
    record = await threads.append(Copyright, record.id, entry)
    return {"success": True, "message": "Message added", "data": record.to_dict()}


@router.get("")
async def list_copyrights(
    status_filter: str | None = Query(default=None, alias="status"),
    user: User = Depends(authorize("copyright.review")),
):
    qs = Copyright.all().order_by("-updated_at")
    if status_filter:
        qs = qs.filter(status=status_filter)
    return {"success": True, "data": [r.to_dict() for r in await qs]}


@router.get("/selected-users")
async def selected_users(user: User = Depends(authorize("copyright.review"))):
    rows = await ConferenceSelectedUser.all().order_by("-selection_date")
    return {"success": True, "data": [r.to_dict() for r in rows]}


@router.put("/{copyright_id}/review")
async def review_copyright(
    copyright_id: str,
    body: CopyrightReviewIn,
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize("copyright.review")),
):
    """
    Approve or reject a submitted copyright form.

    Approval upserts the ConferenceSelectedUser row for the submission
    through the outbox; approving twice leaves one row.
    """
    try:
        record = await Copyright.get_or_none(id=uuid.UUID(copyright_id))
    except ValueError:
        record = None
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Copyright record not found")
    if not record.form_url:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No copyright form has been submitted")

    paper = await PaperSubmission.get(id=record.paper_id)
    fan_out = None
    async with in_transaction() as conn:
        record.status = body.status
        fields = ["status", "updated_at"]
        if body.adminComment and body.adminComment.strip():
            record.messages = list(record.messages or []) + [threads.make_entry(user, body.adminComment)]
            fields.append("messages")
        await record.save(using_db=conn, update_fields=fields)

        if body.status == "Approved":
            payload = await selection.build_payload(record, paper)
            fan_out = await outbox.enqueue("selected_user", payload, using_db=conn)
        await notifications.notify(
            background_tasks,
            notifications.copyright_reviewed(record, body.status, body.adminComment),
            using_db=conn,
        )

    if fan_out is not None and not await outbox.deliver(fan_out.id):
        logger.warning("[copyright] selected-user upsert for %s deferred (outbox entry %s)",
                       record.submission_id, fan_out.id)

    return {"success": True, "message": f"Copyright {body.status.lower()}", "data": record.to_dict()}
