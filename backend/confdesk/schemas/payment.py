# confdesk/schemas/payment.py
"""
Pydantic schemas for copyright review and payment verification endpoints.
Payment submission itself is multipart (form fields + screenshot file).
"""
from typing import Literal, Optional
from pydantic import BaseModel


class CopyrightReviewIn(BaseModel):
    status: Literal["Approved", "Rejected"]
    adminComment: Optional[str] = None


class VerifyPaymentIn(BaseModel):
    notes: Optional[str] = None


class RejectPaymentIn(BaseModel):
    reason: Optional[str] = None
