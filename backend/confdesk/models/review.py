# confdesk/models/review.py
"""
Review models.

Round 1 reviews live in `reviewer_reviews`; round 2 re-reviews of a
revised paper live in `re_reviews`. Both are keyed by (paper, reviewer).
"""
import uuid
from enum import Enum
from tortoise import fields, models


class Recommendation(str, Enum):
    ACCEPT = "Accept"
    MINOR_REVISION = "Minor Revision"
    MAJOR_REVISION = "Major Revision"
    CONDITIONAL_ACCEPT = "Conditional Accept"
    REJECT = "Reject"


class ReviewStatus(str, Enum):
    PENDING = "Pending"
    SUBMITTED = "Submitted"


class ReviewBase(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    reviewer_name = fields.CharField(max_length=256, null=True)
    reviewer_email = fields.CharField(max_length=256, null=True)

    comments = fields.TextField()
    comments_to_editor = fields.TextField(default="")
    comments_to_author = fields.TextField(default="")
    strengths = fields.TextField(null=True)
    weaknesses = fields.TextField(null=True)

    overall_rating = fields.SmallIntField()
    novelty_rating = fields.SmallIntField(null=True)
    quality_rating = fields.SmallIntField(null=True)
    clarity_rating = fields.SmallIntField(null=True)
    recommendation = fields.CharEnumField(Recommendation, max_length=32)

    status = fields.CharEnumField(ReviewStatus, max_length=16, default=ReviewStatus.SUBMITTED)
    reviewed_pdf_url = fields.CharField(max_length=1024, null=True)
    deadline = fields.DatetimeField(null=True)
    submitted_at = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        abstract = True

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "paper": str(self.paper_id),
            "reviewer": str(self.reviewer_id),
            "reviewerName": self.reviewer_name,
            "reviewerEmail": self.reviewer_email,
            "round": self.round,
            "comments": self.comments,
            "commentsToEditor": self.comments_to_editor,
            "commentsToAuthor": self.comments_to_author,
            "strengths": self.strengths,
            "weaknesses": self.weaknesses,
            "overallRating": self.overall_rating,
            "noveltyRating": self.novelty_rating,
            "qualityRating": self.quality_rating,
            "clarityRating": self.clarity_rating,
            "recommendation": Recommendation(self.recommendation).value,
            "status": ReviewStatus(self.status).value,
            "reviewedPdfUrl": self.reviewed_pdf_url,
            "submittedAt": self.submitted_at.isoformat() if self.submitted_at else None,
        }


class ReviewerReview(ReviewBase):
    paper = fields.ForeignKeyField("models.PaperSubmission", related_name="reviews", on_delete=fields.CASCADE)
    reviewer = fields.ForeignKeyField("models.User", related_name="reviews", on_delete=fields.CASCADE)

    round = 1

    class Meta:
        table = "reviewer_reviews"
        unique_together = (("paper", "reviewer"),)


class ReReview(ReviewBase):
    paper = fields.ForeignKeyField("models.PaperSubmission", related_name="re_reviews", on_delete=fields.CASCADE)
    reviewer = fields.ForeignKeyField("models.User", related_name="re_reviews", on_delete=fields.CASCADE)

    round = 2

    class Meta:
        table = "re_reviews"
        unique_together = (("paper", "reviewer"),)


def review_model(round_no: int):
    return ReReview if round_no >= 2 else ReviewerReview


async def author_feedback(paper_id, using_db=None) -> list[dict]:
    """
    Submitted reviews of both rounds as the author may see them.
    Reviewers are numbered per round; names, emails and notes to the
    editor are left out.
    """
    feedback = []
    for model in (ReviewerReview, ReReview):
        rows = await model.filter(paper_id=paper_id, status=ReviewStatus.SUBMITTED).using_db(using_db).order_by(
            "created_at"
        )
        for n, r in enumerate(rows, start=1):
            feedback.append({
                "reviewer": f"Reviewer {n}",
                "round": r.round,
                "commentsToAuthor": r.comments_to_author,
                "strengths": r.strengths,
                "weaknesses": r.weaknesses,
                "overallRating": r.overall_rating,
                "noveltyRating": r.novelty_rating,
                "qualityRating": r.quality_rating,
                "clarityRating": r.clarity_rating,
                "recommendation": Recommendation(r.recommendation).value,
            })
    return feedback
