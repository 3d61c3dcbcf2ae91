# confdesk/schemas/admin.py
"""
Pydantic schemas for admin and editor account-management endpoints.
"""
from typing import Optional
from pydantic import BaseModel


class CreateStaffIn(BaseModel):
    """
    Request model for creating an Editor (admin) or Reviewer (editor/admin).
    When password is omitted a random one is generated and mailed.
    """
    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None


class AssignEditorIn(BaseModel):
    editorId: Optional[str] = None


class ReminderIn(BaseModel):
    reviewerId: Optional[str] = None
