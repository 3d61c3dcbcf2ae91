# confdesk/core/workflow.py
"""
Paper status state machine.

Statuses are a closed set and every change goes through `next_status`,
which looks the (current status, event) pair up in a single transition
table. Handlers never assign a status string directly.
"""
from enum import Enum


class PaperStatus(str, Enum):
    SUBMITTED = "Submitted"
    EDITOR_ASSIGNED = "Editor Assigned"
    UNDER_REVIEW = "Under Review"
    REVIEW_RECEIVED = "Review Received"
    REVISION_REQUIRED = "Revision Required"
    REVISED_SUBMITTED = "Revised Submitted"
    CONDITIONALLY_ACCEPTED = "Conditionally Accept"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    PUBLISHED = "Published"


class PaperEvent(str, Enum):
    ASSIGN_EDITOR = "assign_editor"
    ASSIGN_REVIEWERS = "assign_reviewers"
    REVIEWS_COMPLETE = "reviews_complete"
    REQUEST_REVISION = "request_revision"
    SUBMIT_REVISION = "submit_revision"
    ACCEPT = "accept"
    CONDITIONALLY_ACCEPT = "conditionally_accept"
    REVISE = "revise"
    REJECT = "reject"
    PUBLISH = "publish"


class Decision(str, Enum):
    """Editor-entered final decision, stored apart from the paper status."""
    ACCEPT = "Accept"
    CONDITIONALLY_ACCEPT = "Conditionally Accept"
    REVISE_AND_RESUBMIT = "Revise & Resubmit"
    REJECT = "Reject"


DECISION_EVENTS = {
    Decision.ACCEPT: PaperEvent.ACCEPT,
    Decision.CONDITIONALLY_ACCEPT: PaperEvent.CONDITIONALLY_ACCEPT,
    Decision.REVISE_AND_RESUBMIT: PaperEvent.REVISE,
    Decision.REJECT: PaperEvent.REJECT,
}

TERMINAL_STATUSES = frozenset({PaperStatus.ACCEPTED, PaperStatus.REJECTED, PaperStatus.PUBLISHED})

# Statuses in which an editor may still rule on the paper
_DECIDABLE = (
    PaperStatus.UNDER_REVIEW,
    PaperStatus.REVIEW_RECEIVED,
    PaperStatus.REVISED_SUBMITTED,
    PaperStatus.CONDITIONALLY_ACCEPTED,
)


def _build_transitions() -> dict[tuple[PaperStatus, PaperEvent], PaperStatus]:
    table: dict[tuple[PaperStatus, PaperEvent], PaperStatus] = {}

    for s in (PaperStatus.SUBMITTED, PaperStatus.EDITOR_ASSIGNED):
        table[(s, PaperEvent.ASSIGN_EDITOR)] = PaperStatus.EDITOR_ASSIGNED

    for s in (
        PaperStatus.SUBMITTED,
        PaperStatus.EDITOR_ASSIGNED,
        PaperStatus.UNDER_REVIEW,
        PaperStatus.REVIEW_RECEIVED,
        PaperStatus.REVISED_SUBMITTED,
    ):
        table[(s, PaperEvent.ASSIGN_REVIEWERS)] = PaperStatus.UNDER_REVIEW

    table[(PaperStatus.UNDER_REVIEW, PaperEvent.REVIEWS_COMPLETE)] = PaperStatus.REVIEW_RECEIVED

    for s in (PaperStatus.UNDER_REVIEW, PaperStatus.REVIEW_RECEIVED, PaperStatus.REVISED_SUBMITTED):
        table[(s, PaperEvent.REQUEST_REVISION)] = PaperStatus.REVISION_REQUIRED

    for s in (PaperStatus.REVISION_REQUIRED, PaperStatus.CONDITIONALLY_ACCEPTED):
        table[(s, PaperEvent.SUBMIT_REVISION)] = PaperStatus.REVISED_SUBMITTED

    for s in _DECIDABLE:
        table[(s, PaperEvent.ACCEPT)] = PaperStatus.ACCEPTED
        table[(s, PaperEvent.CONDITIONALLY_ACCEPT)] = PaperStatus.CONDITIONALLY_ACCEPTED
        table[(s, PaperEvent.REVISE)] = PaperStatus.REVISION_REQUIRED

    for s in (PaperStatus.SUBMITTED, PaperStatus.EDITOR_ASSIGNED) + _DECIDABLE:
        table[(s, PaperEvent.REJECT)] = PaperStatus.REJECTED

    table[(PaperStatus.ACCEPTED, PaperEvent.PUBLISH)] = PaperStatus.PUBLISHED
    return table


TRANSITIONS = _build_transitions()


class InvalidTransition(Exception):
    """Raised when an event is not legal for the paper's current status."""

    def __init__(self, current: PaperStatus, event: PaperEvent):
        self.current = current
        self.event = event
        super().__init__(f"Cannot {event.value.replace('_', ' ')} a paper in status '{current.value}'")


def next_status(current: str | PaperStatus, event: PaperEvent) -> PaperStatus:
    current = PaperStatus(current)
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransition(current, event) from None


def can_apply(current: str | PaperStatus, event: PaperEvent) -> bool:
    return (PaperStatus(current), event) in TRANSITIONS


def is_terminal(current: str | PaperStatus) -> bool:
    return PaperStatus(current) in TERMINAL_STATUSES
