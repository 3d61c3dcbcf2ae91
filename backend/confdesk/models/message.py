# confdesk/models/message.py
"""
Message thread models.

Each thread is one row with a fixed set of participants and an
append-only JSON list of entries:
    {sender, senderId, senderName, message, timestamp}
"""
import uuid
from tortoise import fields, models


class PaperMessage(models.Model):
    """Author <-> assigned editor thread, one per submission."""
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    submission_id = fields.CharField(max_length=32, unique=True, index=True)
    paper = fields.ForeignKeyField("models.PaperSubmission", related_name="paper_threads", on_delete=fields.CASCADE)
    author_email = fields.CharField(max_length=256)
    editor = fields.ForeignKeyField("models.User", related_name="paper_threads", null=True, on_delete=fields.SET_NULL)
    messages = fields.JSONField(default=list)
    last_message_at = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "paper_messages"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "submissionId": self.submission_id,
            "paperId": str(self.paper_id),
            "authorEmail": self.author_email,
            "editorId": str(self.editor_id) if self.editor_id else None,
            "messages": list(self.messages or []),
            "lastMessageAt": self.last_message_at.isoformat() if self.last_message_at else None,
        }


class ReviewerMessage(models.Model):
    """Editor <-> reviewer thread for one paper."""
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    submission_id = fields.CharField(max_length=32, index=True)
    reviewer = fields.ForeignKeyField("models.User", related_name="reviewer_threads", on_delete=fields.CASCADE)
    editor = fields.ForeignKeyField("models.User", related_name="editor_threads", null=True, on_delete=fields.SET_NULL)
    review_id = fields.UUIDField(null=True)
    conversation = fields.JSONField(default=list)
    status = fields.CharField(max_length=16, default="active")  # active / closed
    last_message_at = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "reviewer_messages"
        unique_together = (("submission_id", "reviewer"),)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "submissionId": self.submission_id,
            "reviewerId": str(self.reviewer_id),
            "editorId": str(self.editor_id) if self.editor_id else None,
            "reviewId": str(self.review_id) if self.review_id else None,
            "conversation": list(self.conversation or []),
            "status": self.status,
            "lastMessageAt": self.last_message_at.isoformat() if self.last_message_at else None,
        }


class SupportMessage(models.Model):
    """Author <-> conference admin support thread, one per author."""
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    author = fields.OneToOneField("models.User", related_name="support_thread", on_delete=fields.CASCADE)
    author_email = fields.CharField(max_length=256)
    author_name = fields.CharField(max_length=256)
    messages = fields.JSONField(default=list)
    status = fields.CharField(max_length=16, default="Open")  # Open / Replied
    last_message_at = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "support_messages"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "authorId": str(self.author_id),
            "authorEmail": self.author_email,
            "authorName": self.author_name,
            "messages": list(self.messages or []),
            "status": self.status,
            "lastMessageAt": self.last_message_at.isoformat() if self.last_message_at else None,
        }
