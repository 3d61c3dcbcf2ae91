# confdesk/schemas/review.py
"""
Pydantic schemas for reviewer and editor review endpoints.
"""
import datetime as dt
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

from confdesk.models.review import Recommendation

Rating = Optional[int]


class ReviewIn(BaseModel):
    """
    Review submitted by an assigned reviewer.
    `round` 1 is the first review, 2 the re-review of a revised paper.
    """
    comments: Optional[str] = None
    commentsToEditor: Optional[str] = None
    commentsToAuthor: Optional[str] = None
    strengths: Optional[str] = None
    weaknesses: Optional[str] = None
    overallRating: Rating = Field(default=None, ge=1, le=5)
    noveltyRating: Rating = Field(default=None, ge=1, le=5)
    qualityRating: Rating = Field(default=None, ge=1, le=5)
    clarityRating: Rating = Field(default=None, ge=1, le=5)
    recommendation: Optional[Recommendation] = None
    reviewedPdfUrl: Optional[str] = None
    round: int = Field(default=1, ge=1, le=2)


class AssignmentResponseIn(BaseModel):
    response: Literal["accept", "decline"]
    reason: Optional[str] = None


class AssignReviewersIn(BaseModel):
    reviewerIds: List[str] = Field(default_factory=list)
    deadlineDays: Optional[int] = Field(default=None, ge=1, le=90)
    deadline: Optional[dt.date] = None  # Overrides deadlineDays (end of that day, UTC)


class DecisionIn(BaseModel):
    decision: Optional[str] = None  # Accept / Conditionally Accept / Revise & Resubmit / Reject
    comments: Optional[str] = None
    corrections: Optional[str] = None


class RevisionRequestIn(BaseModel):
    message: Optional[str] = None
    deadline: Optional[dt.date] = None
