# confdesk/core/outbox.py
"""
Durable outbox for side effects.

A handler records an OutboxEntry in the same transaction as its primary
write (`enqueue(..., using_db=conn)`), then asks for delivery once the
transaction has committed. Delivery looks the entry kind up in HANDLERS.
A failed entry stays `pending` with its error recorded and is retried by
the next drain; after OUTBOX_MAX_ATTEMPTS failures it becomes `dead` and is
only visible through the admin outbox listing.
"""
import logging
from typing import Awaitable, Callable, Iterable

from ..config import settings
from ..models.outbox import OutboxEntry
from . import mailer

logger = logging.getLogger(__name__)

PENDING = "pending"
SENT = "sent"
DEAD = "dead"

Handler = Callable[[dict], Awaitable[None]]
HANDLERS: dict[str, Handler] = {}


def handler(kind: str):
    """Register the coroutine that performs entries of `kind`."""
    def decorator(fn: Handler) -> Handler:
        HANDLERS[kind] = fn
        return fn
    return decorator


@handler("email")
async def _deliver_email(payload: dict) -> None:
    await mailer.send_email(payload["to"], payload["subject"], payload["html"])


async def enqueue(kind: str, payload: dict, using_db=None) -> OutboxEntry:
    if kind not in HANDLERS:
        raise KeyError(f"No outbox handler for kind '{kind}'")
    return await OutboxEntry.create(kind=kind, payload=payload, using_db=using_db)


async def deliver(entry_id) -> bool:
    """Run one pending entry. Returns True when it ends up sent."""
    entry = await OutboxEntry.get_or_none(id=entry_id)
    if entry is None or entry.status != PENDING:
        return bool(entry and entry.status == SENT)

    try:
        await HANDLERS[entry.kind](entry.payload)
    except Exception as e:
        entry.attempts += 1
        entry.last_error = f"{type(e).__name__}: {e}"[:2000]
        if entry.attempts >= settings.outbox_max_attempts:
            entry.status = DEAD
            logger.error("[outbox] entry %s (%s) is dead after %d attempts: %s",
                         entry.id, entry.kind, entry.attempts, entry.last_error)
        else:
            logger.warning("[outbox] entry %s (%s) failed, attempt %d: %s",
                           entry.id, entry.kind, entry.attempts, entry.last_error)
        await entry.save(update_fields=["attempts", "last_error", "status", "updated_at"])
        return False

    entry.attempts += 1
    entry.status = SENT
    entry.last_error = None
    await entry.save(update_fields=["attempts", "last_error", "status", "updated_at"])
    return True


async def deliver_many(entry_ids: Iterable) -> None:
    for entry_id in entry_ids:
        await deliver(entry_id)


async def drain(limit: int = 100) -> dict:
    """Retry pending entries, oldest first."""
    rows = await OutboxEntry.filter(status=PENDING).order_by("created_at").limit(limit)
    sent = 0
    for row in rows:
        if await deliver(row.id):
            sent += 1
    return {"processed": len(rows), "sent": sent, "failed": len(rows) - sent}
