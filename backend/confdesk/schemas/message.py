# confdesk/schemas/message.py
from typing import Optional
from pydantic import BaseModel


class MessageIn(BaseModel):
    message: Optional[str] = None


class ReviewerMessageIn(BaseModel):
    """Editor -> reviewer message; the thread is keyed by submission and reviewer."""
    reviewerId: Optional[str] = None
    message: Optional[str] = None
