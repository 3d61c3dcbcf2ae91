# confdesk/services/threads.py
"""
Append-only message lists stored on a row (threads and copyright notes).

Appends lock the row for the duration of the transaction so that two
concurrent messages on one thread are both kept.
"""
from fastapi import HTTPException, status
from tortoise.transactions import in_transaction

from confdesk.core.security import utc_now
from confdesk.models.user import Role, User


def make_entry(user: User, message: str | None) -> dict:
    text = (message or "").strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message cannot be empty")
    return {
        "sender": Role(user.role).value,
        "senderId": str(user.id),
        "senderName": user.username,
        "message": text,
        "timestamp": utc_now().isoformat(),
    }


async def append(model, pk, entry: dict, field: str = "messages", **updates):
    """Append `entry` to `field` of the row `pk`, bump last_message_at if the model has it."""
    async with in_transaction() as conn:
        row = await model.filter(id=pk).select_for_update().using_db(conn).first()
        if row is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thread not found")
        setattr(row, field, list(getattr(row, field) or []) + [entry])
        changed = [field, *updates]
        for name, value in updates.items():
            setattr(row, name, value)
        if "last_message_at" in model._meta.fields_map:
            row.last_message_at = utc_now()
            changed.append("last_message_at")
        await row.save(using_db=conn, update_fields=changed)
    return row
