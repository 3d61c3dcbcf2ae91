# confdesk/api/v1/routers/reviewer.py
"""
Reviewer workspace: assigned papers, accept/decline, review drafts and
review submission (round 1 reviews and round 2 re-reviews).
"""
import datetime as dt
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from tortoise.transactions import in_transaction

from confdesk.core.policy import authorize
from confdesk.core.security import utc_now
from confdesk.core.workflow import PaperStatus
from confdesk.models.paper import AssignmentStatus, PaperSubmission, assignment_view
from confdesk.models.review import ReviewStatus, review_model
from confdesk.models.user import User
from confdesk.schemas.review import AssignmentResponseIn, ReviewIn
from confdesk.services import notifications
from confdesk.services.assignments import completion_status, versioned_update

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviewer", tags=["reviewer"])

# Paper status in which each review round is accepted
ROUND_STATUS = {1: PaperStatus.UNDER_REVIEW, 2: PaperStatus.REVISED_SUBMITTED}


def _reviewer_view(paper: PaperSubmission, user: User) -> dict:
    data = paper.to_dict()
    now = utc_now()
    own = paper.assignment_for(user.id)
    data["reviewAssignments"] = [assignment_view(own, now)] if own else []
    data["myAssignment"] = assignment_view(own, now) if own else None
    data.pop("assignedReviewers", None)
    data.pop("editorCorrections", None)
    return data


def _check_assignment(paper: PaperSubmission, user: User) -> dict:
    a = paper.assignment_for(user.id)
    if a is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not assigned to review this paper")
    if a.get("status") == AssignmentStatus.DECLINED:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You declined this review assignment")
    return a


async def _assigned_paper(paper_id: str, user: User) -> PaperSubmission:
    paper = await PaperSubmission.find(paper_id)
    if not paper:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Paper not found")
    if paper.assignment_for(user.id) is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not assigned to review this paper")
    return paper


async def _my_papers(user: User) -> list[PaperSubmission]:
    rid = str(user.id)
    papers = await PaperSubmission.all().order_by("-created_at")
    return [p for p in papers if rid in (p.assigned_reviewers or [])]


@router.get("/papers")
async def assigned_papers(user: User = Depends(authorize("review.read"))):
    papers = await _my_papers(user)
    return {"success": True, "data": [_reviewer_view(p, user) for p in papers]}


@router.get("/papers/{paper_id}")
async def paper_for_review(paper_id: str, user: User = Depends(authorize("review.read"))):
    paper = await _assigned_paper(paper_id, user)
    return {"success": True, "data": _reviewer_view(paper, user)}


@router.post("/papers/{paper_id}/respond")
async def respond_to_assignment(
    paper_id: str,
    body: AssignmentResponseIn,
    user: User = Depends(authorize("review.respond")),
):
    paper = await _assigned_paper(paper_id, user)
    new_state = AssignmentStatus.ACCEPTED if body.response == "accept" else AssignmentStatus.DECLINED
    responded_at = utc_now().isoformat()

    def mutate(p: PaperSubmission) -> dict:
        a = p.assignment_for(user.id)
        if a is None:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not assigned to review this paper")
        if a.get("status") != AssignmentStatus.PENDING:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Assignment is already {a['status']}")
        assignments = [dict(x) for x in p.review_assignments]
        for x in assignments:
            if x["reviewer"] == a["reviewer"]:
                x.update(status=new_state, respondedAt=responded_at)
                if new_state == AssignmentStatus.DECLINED:
                    x["declineReason"] = body.reason
        return {"review_assignments": assignments}

    paper = await versioned_update(paper.id, mutate)
    return {"success": True, "message": f"Assignment {new_state.lower()}", "data": _reviewer_view(paper, user)}


@router.post("/papers/{paper_id}/review")
async def submit_review(
    paper_id: str,
    body: ReviewIn,
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize("review.submit")),
):
    """
    Submit or update the reviewer's review.

    Round 1 is accepted while the paper is Under Review; resubmitting
    updates the same review row. When the scan of the assignment list shows
    every assignment Submitted, the paper moves to Review Received. Round 2
    re-reviews are accepted while the paper is Revised Submitted.
    """
    paper = await PaperSubmission.find(paper_id)
    if not paper:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Paper not found")
    _check_assignment(paper, user)

    if not (body.comments or "").strip() or body.overallRating is None or body.recommendation is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="comments, overallRating and recommendation are required")

    round_no = body.round
    required_status = ROUND_STATUS[round_no]
    if PaperStatus(paper.status) != required_status:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Round {round_no} reviews can only be submitted while the paper is '{required_status.value}'",
        )

    now = utc_now()
    values = {
        "reviewer_name": user.username,
        "reviewer_email": user.email,
        "comments": body.comments.strip(),
        "comments_to_editor": body.commentsToEditor or "",
        "comments_to_author": body.commentsToAuthor or "",
        "strengths": body.strengths,
        "weaknesses": body.weaknesses,
        "overall_rating": body.overallRating,
        "novelty_rating": body.noveltyRating,
        "quality_rating": body.qualityRating,
        "clarity_rating": body.clarityRating,
        "recommendation": body.recommendation,
        "reviewed_pdf_url": body.reviewedPdfUrl,
        "status": ReviewStatus.SUBMITTED,
        "submitted_at": now,
    }
    model = review_model(round_no)

    async with in_transaction() as conn:
        review = await model.filter(paper_id=paper.id, reviewer_id=user.id).using_db(conn).first()
        if review:
            review.update_from_dict(values)
            await review.save(using_db=conn)
        else:
            a = paper.assignment_for(user.id)
            review = await model.create(paper_id=paper.id, reviewer_id=user.id, deadline=_deadline(a),
                                        using_db=conn, **values)

        if round_no == 1:
            def mutate(p: PaperSubmission) -> dict:
                _check_assignment(p, user)
                if PaperStatus(p.status) != PaperStatus.UNDER_REVIEW:
                    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                        detail="The paper is no longer accepting reviews")
                assignments = [dict(x) for x in p.review_assignments]
                for x in assignments:
                    if x["reviewer"] == str(user.id):
                        x.update(status=AssignmentStatus.SUBMITTED, review=str(review.id), submittedAt=now.isoformat())
                return {"review_assignments": assignments, "status": completion_status(p.status, assignments)}

            paper = await versioned_update(paper.id, mutate, using_db=conn)

        if paper.assigned_editor_id:
            editor = await User.filter(id=paper.assigned_editor_id).using_db(conn).first()
            if editor:
                await notifications.notify(
                    background_tasks, notifications.review_received(editor, paper, user.username), using_db=conn
                )

    logger.info("[reviewer] round %d review for %s by %s", round_no, paper.submission_id, user.email)
    return {
        "success": True,
        "message": "Review submitted successfully",
        "data": {"review": review.to_dict(), "paperStatus": PaperStatus(paper.status).value},
    }


def _deadline(assignment: dict | None) -> dt.datetime | None:
    if assignment and assignment.get("deadline"):
        return dt.datetime.fromisoformat(assignment["deadline"])
    return None


@router.get("/papers/{paper_id}/review")
async def review_draft(
    paper_id: str,
    round_no: int = Query(default=1, alias="round", ge=1, le=2),
    user: User = Depends(authorize("review.read")),
):
    paper = await _assigned_paper(paper_id, user)
    review = await review_model(round_no).filter(paper_id=paper.id, reviewer_id=user.id).first()
    return {
        "success": True,
        "data": {
            "review": review.to_dict() if review else None,
            "assignment": assignment_view(paper.assignment_for(user.id), utc_now()),
            "paperStatus": PaperStatus(paper.status).value,
        },
    }


@router.get("/dashboard")
async def dashboard_stats(user: User = Depends(authorize("review.read"))):
    now = utc_now()
    counts = {"assigned": 0, "completed": 0, "pending": 0, "overdue": 0, "declined": 0}
    for p in await _my_papers(user):
        view = assignment_view(p.assignment_for(user.id), now)["status"]
        counts["assigned"] += 1
        if view == AssignmentStatus.SUBMITTED:
            counts["completed"] += 1
        elif view == AssignmentStatus.OVERDUE:
            counts["overdue"] += 1
        elif view == AssignmentStatus.DECLINED:
            counts["declined"] += 1
        else:
            counts["pending"] += 1
    return {"success": True, "data": counts}
