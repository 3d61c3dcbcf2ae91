# confdesk/api/v1/routers/papers.py
"""
Paper submission endpoints (author side plus staff listing).

Every change of `status` goes through the workflow table and a versioned
write; edits that only touch metadata or files save just those columns.
"""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Query, UploadFile, status
from tortoise.exceptions import IntegrityError
from tortoise.expressions import Q
from tortoise.transactions import in_transaction

from confdesk.core import storage
from confdesk.core.errors import ApiError
from confdesk.core.ids import MAX_ID_ATTEMPTS, new_booking_id, next_submission_id
from confdesk.core.policy import authorize, ensure, is_paper_author, is_paper_editor
from confdesk.core.security import utc_now
from confdesk.core.workflow import PaperEvent, PaperStatus, is_terminal, next_status
from confdesk.models.paper import PaperSubmission, UserSubmission
from confdesk.models.review import author_feedback
from confdesk.models.user import Role, User
from confdesk.services import notifications
from confdesk.services.assignments import versioned_update

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/papers", tags=["papers"])

PAPER_FOLDER = "confdesk/papers"


async def _read_pdf(pdf: UploadFile | None, required: bool = True) -> tuple[bytes, str] | None:
    if pdf is None or not pdf.filename:
        if required:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="PDF file is required")
        return None
    name = pdf.filename
    if pdf.content_type != "application/pdf" and not name.lower().endswith(".pdf"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only PDF files are allowed")
    content = await pdf.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")
    return content, name


async def _upload(content: bytes, filename: str) -> dict:
    try:
        return await storage.upload_file(content, filename, PAPER_FOLDER, "raw")
    except storage.StorageError:
        logger.exception("[papers] upload of %s failed", filename)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="File upload failed")


async def _owned_paper(submission_id: str, user: User) -> PaperSubmission:
    paper = await PaperSubmission.find(submission_id)
    if not paper:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Paper not found")
    ensure(is_paper_author(user, paper), "You can only modify your own submission")
    return paper


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_paper(
    background_tasks: BackgroundTasks,
    paperTitle: str | None = Form(default=None),
    authorName: str | None = Form(default=None),
    email: str | None = Form(default=None),
    category: str | None = Form(default=None),
    topic: str | None = Form(default=None),
    abstract: str | None = Form(default=None),
    pdf: UploadFile | None = File(default=None),
    user: User = Depends(authorize("paper.submit")),
):
    """
    Submit the author's paper.

    One submission per author email: a second attempt is rejected with the
    existing submission and booking ids. The paper row and its
    UserSubmission row are written in one transaction; a submission id
    that loses a race on the unique column is regenerated.
    """
    email = (email or user.email).strip().lower()

    existing = await UserSubmission.get_or_none(email=email)
    if existing:
        raise ApiError(
            400,
            "You have already submitted a paper. Only one submission is allowed per author.",
            existingSubmission={"submissionId": existing.submission_id, "bookingId": existing.booking_id},
        )

    missing = [name for name, value in (
        ("paperTitle", paperTitle), ("authorName", authorName), ("category", category),
    ) if not (value or "").strip()]
    if missing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Missing required fields: {', '.join(missing)}")

    content, filename = await _read_pdf(pdf)
    uploaded = await _upload(content, filename)

    paper = None
    booking_id = None
    for attempt in range(MAX_ID_ATTEMPTS):
        submission_id = await next_submission_id(category)
        booking_id = new_booking_id()
        try:
            async with in_transaction() as conn:
                paper = PaperSubmission(
                    submission_id=submission_id,
                    title=paperTitle.strip(),
                    author_name=authorName.strip(),
                    email=email,
                    category=category.strip(),
                    topic=(topic or "").strip() or None,
                    abstract=abstract,
                    pdf_url=uploaded["url"],
                    pdf_public_id=uploaded["publicId"],
                    pdf_file_name=uploaded["fileName"],
                    status=PaperStatus.SUBMITTED,
                )
                paper.append_version(uploaded["url"], uploaded["publicId"], uploaded["fileName"])
                await paper.save(using_db=conn)
                await UserSubmission.create(
                    email=email, submission_id=submission_id, booking_id=booking_id, using_db=conn
                )
                await notifications.notify(
                    background_tasks,
                    notifications.submission_received(paper, booking_id),
                    notifications.admin_new_submission(paper),
                    using_db=conn,
                )
            break
        except IntegrityError:
            paper = None
            existing = await UserSubmission.get_or_none(email=email)
            if existing:
                await storage.delete_quietly(uploaded["publicId"])
                raise ApiError(
                    400,
                    "You have already submitted a paper. Only one submission is allowed per author.",
                    existingSubmission={"submissionId": existing.submission_id, "bookingId": existing.booking_id},
                )
            logger.info("[papers] id collision on %s, regenerating (attempt %d)", submission_id, attempt + 1)

    if paper is None:
        await storage.delete_quietly(uploaded["publicId"])
        raise ApiError(409, "Could not allocate a submission id, please retry")

    logger.info("[papers] %s submitted by %s", paper.submission_id, email)
    return {
        "success": True,
        "message": "Paper submitted successfully",
        "submissionId": paper.submission_id,
        "bookingId": booking_id,
        "paperDetails": paper.to_dict(),
    }


@router.get("/mine")
async def my_submission(user: User = Depends(authorize("paper.own"))):
    paper = await PaperSubmission.filter(email=user.email).order_by("-created_at").first()
    if not paper:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No submission found")
    booking = await UserSubmission.get_or_none(email=user.email)
    data = paper.to_dict()
    # Reviewer identities and editor notes stay with the staff views
    data.pop("reviewAssignments", None)
    data.pop("assignedReviewers", None)
    data.pop("editorCorrections", None)
    data["bookingId"] = booking.booking_id if booking else None
    # Reviews reach the author once the editor has ruled or asked for a revision
    ruled = paper.final_decision is not None or bool(paper.revision_requests)
    data["reviewerFeedback"] = await author_feedback(paper.id) if ruled else []
    return {"success": True, "data": data}


@router.get("/status/{submission_id}")
async def submission_status(submission_id: str):
    """Public status lookup by submission id."""
    paper = await PaperSubmission.get_or_none(submission_id=submission_id.strip().upper())
    if not paper:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Paper not found")
    return {
        "success": True,
        "data": {
            "submissionId": paper.submission_id,
            "paperTitle": paper.title,
            "status": PaperStatus(paper.status).value,
            "submittedAt": paper.created_at.isoformat() if paper.created_at else None,
            "updatedAt": paper.updated_at.isoformat() if paper.updated_at else None,
        },
    }


@router.get("")
async def list_papers(
    status_filter: str | None = Query(default=None, alias="status"),
    category: str | None = Query(default=None),
    search: str | None = Query(default=None),
    user: User = Depends(authorize("paper.list")),
):
    qs = PaperSubmission.all().order_by("-created_at")
    if user.role == Role.EDITOR:
        qs = qs.filter(Q(assigned_editor_id=user.id) | Q(assigned_editor_id=None))
    if status_filter:
        try:
            qs = qs.filter(status=PaperStatus(status_filter))
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown status '{status_filter}'")
    if category:
        qs = qs.filter(category=category)
    if search:
        qs = qs.filter(
            Q(title__icontains=search) | Q(author_name__icontains=search)
            | Q(submission_id__icontains=search) | Q(email__icontains=search)
        )
    rows = await qs
    return {"success": True, "data": [p.to_dict() for p in rows], "total": len(rows)}


@router.get("/{paper_id}")
async def get_paper(paper_id: str, user: User = Depends(authorize("paper.read"))):
    paper = await PaperSubmission.find(paper_id)
    if not paper:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Paper not found")
    ensure(is_paper_editor(user, paper), "You are not the editor of this paper")
    booking = await UserSubmission.get_or_none(email=paper.email)
    data = paper.to_dict()
    data["bookingId"] = booking.booking_id if booking else None
    return {"success": True, "data": data}


@router.put("/{submission_id}")
async def edit_submission(
    submission_id: str,
    paperTitle: str | None = Form(default=None),
    authorName: str | None = Form(default=None),
    category: str | None = Form(default=None),
    topic: str | None = Form(default=None),
    abstract: str | None = Form(default=None),
    pdf: UploadFile | None = File(default=None),
    user: User = Depends(authorize("paper.own")),
):
    """Edit metadata and optionally replace the PDF (a new version is appended)."""
    paper = await _owned_paper(submission_id, user)
    if is_terminal(paper.status):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"A paper in status '{PaperStatus(paper.status).value}' can no longer be edited")

    changed = []
    for attr, value in (("title", paperTitle), ("author_name", authorName), ("category", category),
                        ("topic", topic), ("abstract", abstract)):
        if value is not None and value.strip():
            setattr(paper, attr, value.strip())
            changed.append(attr)

    upload = await _read_pdf(pdf, required=False)
    if upload:
        uploaded = await _upload(*upload)
        old_public_id = paper.pdf_public_id
        paper.pdf_url = uploaded["url"]
        paper.pdf_public_id = uploaded["publicId"]
        paper.pdf_file_name = uploaded["fileName"]
        paper.append_version(uploaded["url"], uploaded["publicId"], uploaded["fileName"])
        changed += ["pdf_url", "pdf_public_id", "pdf_file_name", "versions"]
        await storage.delete_quietly(old_public_id)

    if not changed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")
    await paper.save(update_fields=changed + ["updated_at"])
    return {"success": True, "message": "Submission updated", "data": paper.to_dict()}


@router.post("/{submission_id}/reupload")
async def reupload_paper(
    submission_id: str,
    pdf: UploadFile | None = File(default=None),
    user: User = Depends(authorize("paper.own")),
):
    paper = await _owned_paper(submission_id, user)
    if is_terminal(paper.status):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Cannot re-upload a paper in status '{PaperStatus(paper.status).value}'")

    content, filename = await _read_pdf(pdf)
    uploaded = await _upload(content, filename)
    paper.pdf_url = uploaded["url"]
    paper.pdf_public_id = uploaded["publicId"]
    paper.pdf_file_name = uploaded["fileName"]
    version = paper.append_version(uploaded["url"], uploaded["publicId"], uploaded["fileName"])
    await paper.save(update_fields=["pdf_url", "pdf_public_id", "pdf_file_name", "versions", "updated_at"])
    return {"success": True, "message": f"Version {version} uploaded", "version": version, "data": paper.to_dict()}


@router.post("/{submission_id}/revision")
async def submit_revision(
    submission_id: str,
    background_tasks: BackgroundTasks,
    authorResponse: str | None = Form(default=None),
    pdf: UploadFile | None = File(default=None),
    highlightedPdf: UploadFile | None = File(default=None),
    responsePdf: UploadFile | None = File(default=None),
    user: User = Depends(authorize("paper.own")),
):
    """
    Upload the revised paper after a revision request or a conditional
    acceptance. Marks the latest pending revision request as submitted.

    `pdf` is the clean revised paper. A copy with the changes highlighted
    and a response letter may be attached; they are kept on the new version.
    """
    paper = await _owned_paper(submission_id, user)
    next_status(paper.status, PaperEvent.SUBMIT_REVISION)  # 409 before uploading anything

    clean = await _read_pdf(pdf)
    attachments = {}
    for key, upload in (("highlightedPdf", highlightedPdf), ("responsePdf", responsePdf)):
        read = await _read_pdf(upload, required=False)
        if read:
            attachments[key] = read

    uploaded = await _upload(*clean)
    extra = {}
    for key, (content, filename) in attachments.items():
        extra[key] = await _upload(content, filename)
    now = utc_now().isoformat()

    def mutate(p: PaperSubmission) -> dict:
        new_status = next_status(p.status, PaperEvent.SUBMIT_REVISION)
        version = p.append_version(uploaded["url"], uploaded["publicId"], uploaded["fileName"], **extra)
        requests = [dict(r) for r in p.revision_requests or []]
        for r in reversed(requests):
            if r.get("status") == "Pending":
                r.update(status="Submitted", submittedAt=now, authorResponse=authorResponse, version=version)
                break
        return {
            "status": new_status,
            "revision_requests": requests,
            "versions": p.versions,
            "revision_count": p.revision_count + 1,
            "pdf_url": uploaded["url"],
            "pdf_public_id": uploaded["publicId"],
            "pdf_file_name": uploaded["fileName"],
        }

    paper = await versioned_update(paper.id, mutate)

    if paper.assigned_editor_id:
        editor = await User.get_or_none(id=paper.assigned_editor_id)
        if editor:
            await notifications.notify(
                background_tasks, notifications.revision_submitted(editor, paper)
            )
    return {"success": True, "message": "Revision submitted", "data": paper.to_dict()}
