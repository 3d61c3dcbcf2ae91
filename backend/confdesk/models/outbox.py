# confdesk/models/outbox.py
import uuid
from tortoise import fields, models


class OutboxEntry(models.Model):
    """
    Side effect recorded next to the primary write and delivered afterwards.
    - kind: "email" or "selected_user"
    - status: pending -> sent, or pending -> dead after too many failed attempts
    - payload: everything the handler needs; no foreign keys so that the
      entry survives deletion of the records it describes
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    kind = fields.CharField(max_length=32, index=True)
    payload = fields.JSONField()
    status = fields.CharField(max_length=16, default="pending", index=True)
    attempts = fields.IntField(default=0)
    last_error = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "outbox_entries"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "kind": self.kind,
            "payload": self.payload,
            "status": self.status,
            "attempts": self.attempts,
            "lastError": self.last_error,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
