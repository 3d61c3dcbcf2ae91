# confdesk/models/paper.py
"""
Database models for paper submissions.

PaperSubmission keeps the embedded lists of the paper record as JSON
columns: review assignments, assigned reviewer ids, file versions and
revision requests. `row_version` is bumped by every conditional write to
those lists (see services.assignments).
"""
import uuid
import datetime as dt
from tortoise import fields, models

from confdesk.core.workflow import Decision, PaperStatus


class AssignmentStatus:
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    DECLINED = "Declined"
    SUBMITTED = "Submitted"
    OVERDUE = "Overdue"  # derived on read, never stored


class PaperSubmission(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    submission_id = fields.CharField(max_length=32, unique=True, index=True)  # e.g. "CO007"

    title = fields.CharField(max_length=512)
    author_name = fields.CharField(max_length=256)
    email = fields.CharField(max_length=256, index=True)
    category = fields.CharField(max_length=128)
    topic = fields.CharField(max_length=256, null=True)
    abstract = fields.TextField(null=True)

    pdf_url = fields.CharField(max_length=1024, null=True)
    pdf_public_id = fields.CharField(max_length=512, null=True)
    pdf_file_name = fields.CharField(max_length=512, null=True)

    status = fields.CharEnumField(PaperStatus, max_length=32, default=PaperStatus.SUBMITTED)
    assigned_editor = fields.ForeignKeyField(
        "models.User", related_name="edited_papers", null=True, on_delete=fields.SET_NULL
    )
    # [{reviewer, deadline, status, assignedAt, reminderCount, review, respondedAt}]
    review_assignments = fields.JSONField(default=list)
    assigned_reviewers = fields.JSONField(default=list)  # reviewer ids, each once

    final_decision = fields.CharEnumField(Decision, max_length=32, null=True)
    editor_comments = fields.TextField(null=True)
    editor_corrections = fields.TextField(null=True)

    revision_count = fields.IntField(default=0)
    revision_requests = fields.JSONField(default=list)
    # append-only [{version, pdfUrl, pdfPublicId, pdfFileName, submittedAt, highlightedPdf?, responsePdf?}]
    versions = fields.JSONField(default=list)

    row_version = fields.IntField(default=0)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "paper_submissions"

    @classmethod
    async def find(cls, key: str) -> "PaperSubmission | None":
        """Look a paper up by storage id or by submission id."""
        try:
            return await cls.get_or_none(id=uuid.UUID(str(key)))
        except ValueError:
            return await cls.get_or_none(submission_id=str(key).strip().upper())

    def assignment_for(self, reviewer_id) -> dict | None:
        rid = str(reviewer_id)
        for a in self.review_assignments:
            if a.get("reviewer") == rid:
                return a
        return None

    def append_version(self, url: str, public_id: str | None, file_name: str | None, **extra) -> int:
        number = len(self.versions or []) + 1
        self.versions = list(self.versions or []) + [{
            "version": number,
            "pdfUrl": url,
            "pdfPublicId": public_id,
            "pdfFileName": file_name,
            "submittedAt": dt.datetime.now(dt.timezone.utc).isoformat(),
            **extra,
        }]
        return number

    def to_dict(self) -> dict:
        now = dt.datetime.now(dt.timezone.utc)
        return {
            "id": str(self.id),
            "submissionId": self.submission_id,
            "paperTitle": self.title,
            "authorName": self.author_name,
            "email": self.email,
            "category": self.category,
            "topic": self.topic,
            "abstract": self.abstract,
            "pdfUrl": self.pdf_url,
            "pdfPublicId": self.pdf_public_id,
            "pdfFileName": self.pdf_file_name,
            "status": PaperStatus(self.status).value,
            "assignedEditor": str(self.assigned_editor_id) if self.assigned_editor_id else None,
            "assignedReviewers": list(self.assigned_reviewers or []),
            "reviewAssignments": [assignment_view(a, now) for a in self.review_assignments or []],
            "finalDecision": Decision(self.final_decision).value if self.final_decision else None,
            "editorComments": self.editor_comments,
            "editorCorrections": self.editor_corrections,
            "revisionCount": self.revision_count,
            "revisionRequests": list(self.revision_requests or []),
            "versions": list(self.versions or []),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


def assignment_view(a: dict, now: dt.datetime) -> dict:
    """Copy of a stored assignment with the derived Overdue status applied."""
    view = dict(a)
    if a.get("status") in (AssignmentStatus.PENDING, AssignmentStatus.ACCEPTED) and a.get("deadline"):
        if dt.datetime.fromisoformat(a["deadline"]) < now:
            view["status"] = AssignmentStatus.OVERDUE
    return view


class UserSubmission(models.Model):
    """One submission per author email; holds the booking id handed out at submit time."""
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    email = fields.CharField(max_length=256, unique=True, index=True)
    submission_id = fields.CharField(max_length=32)
    booking_id = fields.CharField(max_length=32, unique=True)
    submission_date = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "user_submissions"
