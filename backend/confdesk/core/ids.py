# confdesk/core/ids.py
"""
Human-readable business keys.

Submission ids look like "CO007": two upper-case letters from the first word
of the category followed by a 3-digit sequence. The column is unique, so the
caller regenerates the id when an insert loses a race (see papers router).
"""
import re
import secrets
import time

from ..models.paper import PaperSubmission

MAX_ID_ATTEMPTS = 5


def category_prefix(category: str) -> str:
    words = (category or "").split()
    letters = re.sub(r"[^A-Za-z]", "", words[0]) if words else ""
    return (letters[:2] or "XX").upper().ljust(2, "X")


async def next_submission_id(category: str) -> str:
    prefix = category_prefix(category)
    pattern = re.compile(rf"^{prefix}(\d+)$")
    existing = await PaperSubmission.filter(submission_id__startswith=prefix).values_list("submission_id", flat=True)
    highest = 0
    for sid in existing:
        m = pattern.match(sid)
        if m:
            highest = max(highest, int(m.group(1)))
    return f"{prefix}{highest + 1:03d}"


def new_booking_id() -> str:
    stamp = str(int(time.time() * 1000))[-7:]
    return f"BK{stamp}{secrets.randbelow(10000):04d}"
