# confdesk/models/copyright.py
import uuid
from tortoise import fields, models


class Copyright(models.Model):
    """
    Copyright form of an accepted paper.
    - At most one row per submission_id (unique column)
    - status: Pending -> Submitted -> Approved / Rejected
    - messages: author/admin notes, same entry shape as message threads
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    paper = fields.ForeignKeyField("models.PaperSubmission", related_name="copyrights", on_delete=fields.CASCADE)
    submission_id = fields.CharField(max_length=32, unique=True, index=True)
    author_email = fields.CharField(max_length=256, index=True)
    author_name = fields.CharField(max_length=256)
    paper_title = fields.CharField(max_length=512)

    form_url = fields.CharField(max_length=1024, null=True)
    form_public_id = fields.CharField(max_length=512, null=True)
    status = fields.CharField(max_length=16, default="Pending")
    submitted_at = fields.DatetimeField(null=True)
    messages = fields.JSONField(default=list)

    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "copyrights"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "paperId": str(self.paper_id),
            "submissionId": self.submission_id,
            "authorEmail": self.author_email,
            "authorName": self.author_name,
            "paperTitle": self.paper_title,
            "copyrightFormUrl": self.form_url,
            "copyrightFormPublicId": self.form_public_id,
            "status": self.status,
            "submittedAt": self.submitted_at.isoformat() if self.submitted_at else None,
            "messages": list(self.messages or []),
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class ConferenceSelectedUser(models.Model):
    """Author selected for the conference programme; written by the copyright approval fan-out."""
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    submission_id = fields.CharField(max_length=32, unique=True, index=True)
    author_email = fields.CharField(max_length=256, index=True)
    author_name = fields.CharField(max_length=256)
    paper_title = fields.CharField(max_length=512)
    paper_url = fields.CharField(max_length=1024)
    copyright_url = fields.CharField(max_length=1024)
    category = fields.CharField(max_length=128, null=True)
    abstract = fields.TextField(null=True)
    editor_email = fields.CharField(max_length=256, null=True)
    reviewers = fields.JSONField(default=list)
    revision_rounds = fields.IntField(default=0)
    registration_number = fields.CharField(max_length=64, null=True)
    paper_submitted_at = fields.DatetimeField(null=True)
    copyright_submitted_at = fields.DatetimeField(null=True)
    selection_date = fields.DatetimeField(auto_now=True)
    status = fields.CharField(max_length=16, default="Confirmed")

    class Meta:
        table = "conference_selected_users"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "submissionId": self.submission_id,
            "authorEmail": self.author_email,
            "authorName": self.author_name,
            "paperTitle": self.paper_title,
            "paperUrl": self.paper_url,
            "copyrightUrl": self.copyright_url,
            "category": self.category,
            "editorEmail": self.editor_email,
            "reviewers": list(self.reviewers or []),
            "revisionRounds": self.revision_rounds,
            "registrationNumber": self.registration_number,
            "selectionDate": self.selection_date.isoformat() if self.selection_date else None,
            "status": self.status,
        }
