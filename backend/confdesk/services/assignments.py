# confdesk/services/assignments.py
"""
Versioned writes to a paper's embedded lists.

`review_assignments`, `assigned_reviewers` and the status that depends on
them are written with a conditional UPDATE on `row_version`. When another
request committed in between, the update matches no row; the paper is
reloaded and the mutation is computed again from the fresh state.
"""
import logging
from typing import Callable

from confdesk.core.errors import ApiError
from confdesk.core.security import utc_now
from confdesk.core.workflow import PaperEvent, PaperStatus, next_status
from confdesk.models.paper import AssignmentStatus, PaperSubmission

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 5

# Returns the column updates to apply, or None when nothing has to change.
Mutation = Callable[[PaperSubmission], dict | None]


async def versioned_update(paper_id, mutate: Mutation, attempts: int = MAX_WRITE_ATTEMPTS,
                           using_db=None) -> PaperSubmission:
    for attempt in range(1, attempts + 1):
        paper = await PaperSubmission.filter(id=paper_id).using_db(using_db).first()
        if paper is None:
            raise ApiError(404, "Paper not found")

        changes = mutate(paper)
        if not changes:
            return paper

        changes = dict(changes, updated_at=utc_now())
        matched = await PaperSubmission.filter(id=paper.id, row_version=paper.row_version).using_db(using_db).update(
            row_version=paper.row_version + 1, **changes
        )
        if matched:
            for field, value in changes.items():
                setattr(paper, field, value)
            paper.row_version += 1
            return paper

        logger.info("[assignments] stale write on paper %s (version %d), attempt %d",
                    paper.submission_id, paper.row_version, attempt)

    raise ApiError(409, "Paper was modified concurrently, please retry")


def all_submitted(assignments: list[dict]) -> bool:
    return bool(assignments) and all(a.get("status") == AssignmentStatus.SUBMITTED for a in assignments)


def completion_status(current, assignments: list[dict]) -> PaperStatus:
    """Review Received once every assignment is submitted while Under Review; otherwise unchanged."""
    if PaperStatus(current) == PaperStatus.UNDER_REVIEW and all_submitted(assignments):
        return next_status(current, PaperEvent.REVIEWS_COMPLETE)
    return PaperStatus(current)
