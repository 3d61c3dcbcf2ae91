# confdesk/api/v1/routers/editor.py
"""
Editor workspace: reviewer accounts, reviewer assignment, reminders,
final decisions and revision requests.
"""
import datetime as dt
import logging
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from tortoise.expressions import Q
from tortoise.transactions import in_transaction

from confdesk.config import settings
from confdesk.core.policy import authorize, ensure, is_paper_editor
from confdesk.core.security import utc_now
from confdesk.core.workflow import DECISION_EVENTS, Decision, PaperEvent, PaperStatus, next_status
from confdesk.models.paper import AssignmentStatus, PaperSubmission, assignment_view
from confdesk.models.payment import FinalAcceptance
from confdesk.models.review import ReReview, ReviewerReview, ReviewStatus, author_feedback
from confdesk.models.user import Role, User
from confdesk.schemas.admin import CreateStaffIn, ReminderIn
from confdesk.schemas.review import AssignReviewersIn, DecisionIn, RevisionRequestIn
from confdesk.services import notifications
from confdesk.services.accounts import create_staff_account
from confdesk.services.assignments import completion_status, versioned_update

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/editor", tags=["editor"])


async def _editable_paper(paper_id: str, user: User) -> PaperSubmission:
    paper = await PaperSubmission.find(paper_id)
    if not paper:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Paper not found")
    ensure(is_paper_editor(user, paper), "You are not the editor of this paper")
    return paper


def _scoped_papers(user: User):
    qs = PaperSubmission.all()
    if user.role == Role.EDITOR:
        qs = qs.filter(Q(assigned_editor_id=user.id) | Q(assigned_editor_id=None))
    return qs


def _end_of_day(day: dt.date) -> dt.datetime:
    return dt.datetime.combine(day, dt.time(23, 59, 59), tzinfo=dt.timezone.utc)


# ==============================================================================
# Reviewer accounts
# ==============================================================================
@router.post("/reviewers", status_code=status.HTTP_201_CREATED)
async def create_reviewer(
    body: CreateStaffIn,
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize("reviewer.create")),
):
    reviewer = await create_staff_account(body, Role.REVIEWER, background_tasks)
    return {"success": True, "message": "Reviewer created and credentials emailed", "data": reviewer.public_dict()}


@router.get("/reviewers")
async def list_reviewers(
    search: str | None = Query(default=None),
    user: User = Depends(authorize("reviewer.list")),
):
    """Reviewers with assigned / completed / pending / overdue counts and average overall rating."""
    qs = User.filter(role=Role.REVIEWER).order_by("username")
    if search:
        qs = qs.filter(Q(username__icontains=search) | Q(email__icontains=search))
    reviewers = await qs

    now = utc_now()
    stats = {str(r.id): {"assigned": 0, "completed": 0, "pending": 0, "overdue": 0} for r in reviewers}
    for paper in await PaperSubmission.all():
        for a in paper.review_assignments or []:
            s = stats.get(a.get("reviewer"))
            if s is None:
                continue
            view = assignment_view(a, now)["status"]
            s["assigned"] += 1
            if view == AssignmentStatus.SUBMITTED:
                s["completed"] += 1
            elif view == AssignmentStatus.OVERDUE:
                s["overdue"] += 1
            elif view in (AssignmentStatus.PENDING, AssignmentStatus.ACCEPTED):
                s["pending"] += 1

    ratings: dict[str, list[int]] = {}
    for review in await ReviewerReview.filter(status=ReviewStatus.SUBMITTED):
        ratings.setdefault(str(review.reviewer_id), []).append(review.overall_rating)

    items = []
    for r in reviewers:
        rid = str(r.id)
        scores = ratings.get(rid) or []
        items.append({
            **r.public_dict(),
            "stats": {
                **stats[rid],
                "averageRating": round(sum(scores) / len(scores), 2) if scores else None,
            },
        })
    return {"success": True, "data": items}


@router.get("/dashboard")
async def dashboard_stats(user: User = Depends(authorize("stats.editor"))):
    papers = await _scoped_papers(user)
    by_status = {s.value: 0 for s in PaperStatus}
    pending_reviews = 0
    now = utc_now()
    for p in papers:
        by_status[PaperStatus(p.status).value] += 1
        pending_reviews += sum(
            1 for a in p.review_assignments or []
            if assignment_view(a, now)["status"] != AssignmentStatus.SUBMITTED
            and a.get("status") != AssignmentStatus.DECLINED
        )
    return {
        "success": True,
        "data": {
            "totalPapers": len(papers),
            "byStatus": by_status,
            "pendingReviews": pending_reviews,
            "reviewersAvailable": await User.filter(role=Role.REVIEWER).count(),
        },
    }


# ==============================================================================
# Reviewer assignment
# ==============================================================================
@router.post("/papers/{paper_id}/reviewers")
async def assign_reviewers(
    paper_id: str,
    body: AssignReviewersIn,
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize("paper.assign_reviewers")),
):
    """
    Assign reviewers to a paper.

    Creates exactly one Pending assignment per reviewer id, with a deadline
    of now + deadlineDays (default REVIEW_DEADLINE_DAYS) or the end of the
    given date, and moves the paper to Under Review.
    """
    paper = await _editable_paper(paper_id, user)

    ids = [str(i).strip() for i in body.reviewerIds if str(i).strip()]
    if not ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one reviewer is required")
    if len(set(ids)) != len(ids):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Duplicate reviewer ids in request")
    try:
        parsed = [uuid.UUID(i) for i in ids]
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid reviewer id")

    reviewers = await User.filter(id__in=parsed, role=Role.REVIEWER)
    if len(reviewers) != len(ids):
        found = {str(r.id) for r in reviewers}
        bad = [i for i in ids if str(uuid.UUID(i)) not in found]
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Not valid reviewers: {', '.join(bad)}")
    ids = [str(r) for r in parsed]

    now = utc_now()
    if body.deadline:
        deadline = _end_of_day(body.deadline)
    else:
        deadline = now + dt.timedelta(days=body.deadlineDays or settings.review_deadline_days)
    if deadline <= now:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Deadline must be in the future")

    def mutate(p: PaperSubmission) -> dict:
        new_status = next_status(p.status, PaperEvent.ASSIGN_REVIEWERS)
        taken = [i for i in ids if p.assignment_for(i) is not None]
        if taken:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail=f"Reviewer already assigned: {', '.join(taken)}")
        assignments = list(p.review_assignments or []) + [{
            "reviewer": rid,
            "deadline": deadline.isoformat(),
            "status": AssignmentStatus.PENDING,
            "assignedAt": now.isoformat(),
            "reminderCount": 0,
            "review": None,
        } for rid in ids]
        assigned = list(p.assigned_reviewers or [])
        assigned += [rid for rid in ids if rid not in assigned]
        updates = {"review_assignments": assignments, "assigned_reviewers": assigned, "status": new_status}
        if p.assigned_editor_id is None and user.role == Role.EDITOR:
            updates["assigned_editor_id"] = user.id
        return updates

    paper = await versioned_update(paper.id, mutate)

    by_id = {str(r.id): r for r in reviewers}
    await notifications.notify(
        background_tasks,
        *(notifications.reviewer_assigned(by_id[rid], paper, deadline.isoformat()) for rid in ids),
    )
    logger.info("[editor] %d reviewer(s) assigned to %s", len(ids), paper.submission_id)
    return {"success": True, "message": f"{len(ids)} reviewer(s) assigned", "data": paper.to_dict()}


@router.delete("/papers/{paper_id}/reviewers/{reviewer_id}")
async def remove_reviewer(
    paper_id: str,
    reviewer_id: str,
    user: User = Depends(authorize("paper.remove_reviewer")),
):
    paper = await _editable_paper(paper_id, user)

    def mutate(p: PaperSubmission) -> dict:
        a = p.assignment_for(reviewer_id)
        if a is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reviewer is not assigned to this paper")
        if a.get("status") == AssignmentStatus.SUBMITTED or a.get("review"):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail="Cannot remove a reviewer who already submitted a review")
        remaining = [x for x in p.review_assignments if x.get("reviewer") != a["reviewer"]]
        return {
            "review_assignments": remaining,
            "assigned_reviewers": [r for r in p.assigned_reviewers or [] if r != a["reviewer"]],
            "status": completion_status(p.status, remaining),
        }

    paper = await versioned_update(paper.id, mutate)
    return {"success": True, "message": "Reviewer removed", "data": paper.to_dict()}


@router.get("/non-responding")
async def non_responding_reviewers(user: User = Depends(authorize("paper.reminders"))):
    """Assignments still Pending, including those past their deadline (Overdue)."""
    now = utc_now()
    rows = []
    reviewer_ids = set()
    papers = await _scoped_papers(user).filter(status=PaperStatus.UNDER_REVIEW)
    for p in papers:
        for a in p.review_assignments or []:
            view = assignment_view(a, now)
            if a.get("status") == AssignmentStatus.PENDING or view["status"] == AssignmentStatus.OVERDUE:
                rows.append((p, view))
                reviewer_ids.add(a["reviewer"])

    users = {str(u.id): u for u in await User.filter(id__in=list(reviewer_ids))} if reviewer_ids else {}
    data = []
    for p, view in rows:
        r = users.get(view["reviewer"])
        data.append({
            "paperId": str(p.id),
            "submissionId": p.submission_id,
            "paperTitle": p.title,
            "reviewerId": view["reviewer"],
            "reviewerName": r.username if r else None,
            "reviewerEmail": r.email if r else None,
            "deadline": view.get("deadline"),
            "status": view["status"],
            "reminderCount": view.get("reminderCount", 0),
        })
    return {"success": True, "data": data}


@router.post("/papers/{paper_id}/reminders")
async def send_reminder(
    paper_id: str,
    body: ReminderIn,
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize("paper.reminders")),
):
    paper = await _editable_paper(paper_id, user)
    if not body.reviewerId:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="reviewerId is required")
    reviewer = await User.get_or_none(id=body.reviewerId) if _is_uuid(body.reviewerId) else None
    if not reviewer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reviewer not found")

    sent_at = utc_now().isoformat()

    def mutate(p: PaperSubmission) -> dict:
        a = p.assignment_for(reviewer.id)
        if a is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reviewer is not assigned to this paper")
        if a.get("status") in (AssignmentStatus.SUBMITTED, AssignmentStatus.DECLINED):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail=f"Assignment is already {a['status']}")
        assignments = [dict(x) for x in p.review_assignments]
        for x in assignments:
            if x["reviewer"] == a["reviewer"]:
                x["reminderCount"] = int(x.get("reminderCount") or 0) + 1
                x["lastReminderAt"] = sent_at
        return {"review_assignments": assignments}

    paper = await versioned_update(paper.id, mutate)
    a = paper.assignment_for(reviewer.id)
    await notifications.notify(background_tasks, notifications.reviewer_reminder(reviewer, paper, a.get("deadline")))
    return {"success": True, "message": "Reminder sent", "data": {"reminderCount": a["reminderCount"]}}


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


# ==============================================================================
# Reviews, decisions, revisions
# ==============================================================================
@router.get("/papers/{paper_id}/reviews")
async def paper_reviews(paper_id: str, user: User = Depends(authorize("paper.reviews"))):
    paper = await _editable_paper(paper_id, user)
    first = await ReviewerReview.filter(paper_id=paper.id).order_by("created_at")
    second = await ReReview.filter(paper_id=paper.id).order_by("created_at")
    return {
        "success": True,
        "data": {
            "paper": paper.to_dict(),
            "reviews": [r.to_dict() for r in first],
            "reReviews": [r.to_dict() for r in second],
        },
    }


@router.post("/papers/{paper_id}/decision")
async def final_decision(
    paper_id: str,
    body: DecisionIn,
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize("paper.decide")),
):
    """
    Record the editor's final decision.

    Accept -> Accepted, Conditionally Accept -> Conditionally Accept,
    Revise & Resubmit -> Revision Required, Reject -> Rejected. Accepting
    also creates the FinalAcceptance record that payments start from.
    """
    paper = await _editable_paper(paper_id, user)
    try:
        decision = Decision(body.decision)
    except ValueError:
        choices = ", ".join(d.value for d in Decision)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid decision. Use one of: {choices}")
    event = DECISION_EVENTS[decision]

    def mutate(p: PaperSubmission) -> dict:
        return {
            "status": next_status(p.status, event),
            "final_decision": decision,
            "editor_comments": body.comments,
            "editor_corrections": body.corrections,
        }

    async with in_transaction() as conn:
        paper = await versioned_update(paper.id, mutate, using_db=conn)
        feedback = await author_feedback(paper.id, using_db=conn)
        if decision == Decision.ACCEPT:
            await FinalAcceptance.get_or_create(
                paper_id=paper.id,
                defaults={
                    "submission_id": paper.submission_id,
                    "paper_title": paper.title,
                    "author_name": paper.author_name,
                    "author_email": paper.email,
                    "pdf_url": paper.pdf_url,
                    "category": paper.category,
                },
                using_db=conn,
            )
        await notifications.notify(
            background_tasks,
            notifications.decision(paper, decision.value, body.comments, feedback),
            using_db=conn,
        )

    logger.info("[editor] decision %s on %s", decision.value, paper.submission_id)
    return {"success": True, "message": f"Decision recorded: {decision.value}", "data": paper.to_dict()}


@router.post("/papers/{paper_id}/revision-request")
async def request_revision(
    paper_id: str,
    body: RevisionRequestIn,
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize("paper.request_revision")),
):
    paper = await _editable_paper(paper_id, user)
    message = (body.message or "").strip()
    if not message:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Revision message is required")

    review_count = await ReviewerReview.filter(paper_id=paper.id, status=ReviewStatus.SUBMITTED).count()
    if review_count < settings.min_reviews_for_revision:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At least {settings.min_reviews_for_revision} reviews are required before requesting a revision "
                   f"({review_count} received)",
        )

    deadline = _end_of_day(body.deadline).isoformat() if body.deadline else None
    requested_at = utc_now().isoformat()
    feedback = await author_feedback(paper.id)

    def mutate(p: PaperSubmission) -> dict:
        new_status = next_status(p.status, PaperEvent.REQUEST_REVISION)
        requests = list(p.revision_requests or []) + [{
            "round": len(p.revision_requests or []) + 1,
            "message": message,
            "deadline": deadline,
            "requestedAt": requested_at,
            "requestedBy": str(user.id),
            "status": "Pending",
            "reviewerComments": feedback,
        }]
        return {"status": new_status, "revision_requests": requests}

    paper = await versioned_update(paper.id, mutate)
    await notifications.notify(
        background_tasks, notifications.revision_requested(paper, message, deadline, feedback)
    )
    return {"success": True, "message": "Revision requested", "data": paper.to_dict()}
