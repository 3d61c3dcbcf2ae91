# confdesk/api/v1/routers/payments.py
"""
Post-acceptance registration and payment verification.

FinalAcceptance (pending -> paid -> verified) tracks the accepted paper,
PaymentRegistration holds the author's payment proof, and a verified
registration is promoted once into PaymentDoneFinalUser.
"""
import logging
import uuid
from decimal import Decimal, InvalidOperation

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Query, UploadFile, status
from tortoise.exceptions import IntegrityError
from tortoise.transactions import in_transaction

from confdesk.config import settings
from confdesk.core import storage
from confdesk.core.errors import ApiError
from confdesk.core.policy import authorize
from confdesk.core.security import utc_now
from confdesk.models.copyright import ConferenceSelectedUser
from confdesk.models.payment import (
    FinalAcceptance,
    PaymentDoneFinalUser,
    PaymentRegistration,
    new_registration_number,
)
from confdesk.models.user import User
from confdesk.schemas.payment import RejectPaymentIn, VerifyPaymentIn
from confdesk.services import notifications

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

PAYMENT_METHODS = ("bank-transfer", "bank-transfer-upi", "bank-transfer-bank-account", "paypal", "qr-code")
REGISTRATION_CATEGORIES = ("indian-author", "foreign-author")
SCREENSHOT_FOLDER = "confdesk/payment-screenshots"


async def _registration(registration_id: str) -> PaymentRegistration:
    try:
        reg = await PaymentRegistration.get_or_none(id=uuid.UUID(registration_id))
    except ValueError:
        reg = None
    if not reg:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Registration not found")
    return reg


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_payment(
    paymentMethod: str | None = Form(default=None),
    amount: str | None = Form(default=None),
    registrationCategory: str | None = Form(default=None),
    transactionId: str | None = Form(default=None),
    currency: str | None = Form(default=None),
    institution: str | None = Form(default=None),
    address: str | None = Form(default=None),
    country: str | None = Form(default=None),
    screenshot: UploadFile | None = File(default=None),
    user: User = Depends(authorize("payment.submit")),
):
    acceptance = await FinalAcceptance.filter(author_email=user.email).order_by("-acceptance_date").first()
    if not acceptance:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                            detail="No accepted paper found. Only accepted authors can register.")

    if not paymentMethod or not amount or not registrationCategory:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Missing required fields: paymentMethod, amount, registrationCategory")
    if paymentMethod not in PAYMENT_METHODS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown payment method '{paymentMethod}'")
    if registrationCategory not in REGISTRATION_CATEGORIES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Unknown registration category '{registrationCategory}'")
    try:
        value = Decimal(amount)
    except InvalidOperation:
        value = Decimal(0)
    # NaN and Infinity parse as Decimals but are not amounts
    if not value.is_finite() or value <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Amount must be a positive number")

    has_file = screenshot is not None and bool(screenshot.filename)
    if paymentMethod.startswith("bank-transfer") and not has_file:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Payment screenshot is required for bank transfer")

    existing = await PaymentRegistration.filter(
        author_email=user.email, payment_status__in=["pending", "verified"]
    ).first()
    if existing:
        raise ApiError(
            400,
            "You have already submitted a registration. Please wait for admin verification.",
            existingRegistration={
                "paymentStatus": existing.payment_status,
                "registrationDate": existing.registration_date.isoformat() if existing.registration_date else None,
            },
        )

    uploaded = None
    if has_file:
        try:
            uploaded = await storage.upload_file(await screenshot.read(), screenshot.filename, SCREENSHOT_FOLDER, "image")
        except storage.StorageError:
            logger.exception("[payments] screenshot upload failed for %s", user.email)
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                                detail="Failed to upload payment screenshot")

    async with in_transaction() as conn:
        reg = await PaymentRegistration.create(
            user_id=user.id,
            author_email=acceptance.author_email,
            author_name=acceptance.author_name,
            final_acceptance_id=acceptance.id,
            submission_id=acceptance.submission_id,
            paper_title=acceptance.paper_title,
            paper_url=acceptance.pdf_url,
            institution=institution or "To be updated",
            address=address or "To be updated",
            country=country or user.country or "To be updated",
            payment_method=paymentMethod,
            transaction_id=transactionId,
            amount=value,
            currency=currency or "INR",
            screenshot_url=uploaded["url"] if uploaded else None,
            screenshot_public_id=uploaded["publicId"] if uploaded else None,
            registration_category=registrationCategory,
            using_db=conn,
        )
        acceptance.payment_status = "paid"
        acceptance.payment_registration_id = reg.id
        await acceptance.save(using_db=conn, update_fields=["payment_status", "payment_registration_id"])

    logger.info("[payments] registration %s submitted by %s", reg.id, user.email)
    return {
        "success": True,
        "message": "Registration submitted successfully! Please wait for admin verification.",
        "data": reg.to_dict(),
    }


@router.get("/mine")
async def my_registration(user: User = Depends(authorize("payment.submit"))):
    reg = await PaymentRegistration.filter(author_email=user.email).order_by("-registration_date").first()
    acceptance = await FinalAcceptance.filter(author_email=user.email).first()
    final_user = await PaymentDoneFinalUser.filter(author_email=user.email).first()
    return {
        "success": True,
        "data": {
            "registration": reg.to_dict() if reg else None,
            "acceptancePaymentStatus": acceptance.payment_status if acceptance else None,
            "registrationNumber": final_user.registration_number if final_user else None,
        },
    }


@router.get("/admin/pending")
async def admin_pending(user: User = Depends(authorize("payment.verify"))):
    rows = await PaymentRegistration.filter(payment_status="pending").order_by("registration_date")
    return {"success": True, "data": [r.to_dict() for r in rows]}


@router.get("/admin")
async def admin_all(
    status_filter: str | None = Query(default=None, alias="status"),
    user: User = Depends(authorize("payment.verify")),
):
    qs = PaymentRegistration.all().order_by("-registration_date")
    if status_filter:
        qs = qs.filter(payment_status=status_filter)
    return {"success": True, "data": [r.to_dict() for r in await qs]}


@router.get("/admin/final-users")
async def final_users(user: User = Depends(authorize("payment.verify"))):
    rows = await PaymentDoneFinalUser.all().order_by("-verified_at")
    return {"success": True, "data": [r.to_dict() for r in rows]}


@router.post("/{registration_id}/verify")
async def verify_payment(
    registration_id: str,
    body: VerifyPaymentIn,
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize("payment.verify")),
):
    """
    Verify a registration. The registration, its FinalAcceptance and the new
    PaymentDoneFinalUser are written in one transaction.
    """
    reg = await _registration(registration_id)
    registration_number = new_registration_number(settings.conference_code)
    async with in_transaction() as conn:
        # Re-read under a row lock so that concurrent verifies see each other
        reg = await PaymentRegistration.filter(id=reg.id).select_for_update().using_db(conn).first()
        if reg is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Registration not found")
        if reg.payment_status == "verified":
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment is already verified")

        reg.payment_status = "verified"
        reg.verified_by_id = user.id
        reg.verified_at = utc_now()
        reg.verification_notes = body.notes
        await reg.save(using_db=conn,
                       update_fields=["payment_status", "verified_by_id", "verified_at", "verification_notes"])

        if reg.final_acceptance_id:
            await FinalAcceptance.filter(id=reg.final_acceptance_id).using_db(conn).update(payment_status="verified")

        try:
            final_user = await PaymentDoneFinalUser.create(
                registration_number=registration_number,
                payment_registration_id=reg.id,
                user_id=reg.user_id,
                author_email=reg.author_email,
                author_name=reg.author_name,
                submission_id=reg.submission_id,
                paper_title=reg.paper_title,
                paper_url=reg.paper_url,
                payment_method=reg.payment_method,
                transaction_id=reg.transaction_id,
                amount=reg.amount,
                currency=reg.currency,
                registration_category=reg.registration_category,
                verified_by_id=user.id,
                verification_notes=body.notes,
                using_db=conn,
            )
        except IntegrityError:
            # The registration was promoted by a verify this lock did not see
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment is already verified")
        if reg.submission_id:
            await ConferenceSelectedUser.filter(submission_id=reg.submission_id).using_db(conn).update(
                registration_number=registration_number
            )
        await notifications.notify(
            background_tasks, notifications.payment_verified(reg, registration_number), using_db=conn
        )

    logger.info("[payments] registration %s verified -> %s", reg.id, registration_number)
    return {
        "success": True,
        "message": "Payment verified",
        "data": {"registration": reg.to_dict(), "finalUser": final_user.to_dict()},
    }


@router.post("/{registration_id}/reject")
async def reject_payment(
    registration_id: str,
    body: RejectPaymentIn,
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize("payment.verify")),
):
    """Reject a pending registration: it is removed and the acceptance goes back to pending."""
    reason = (body.reason or "").strip()
    if not reason:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Rejection reason is required")
    reg = await _registration(registration_id)
    if reg.payment_status == "verified":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A verified payment cannot be rejected")

    screenshot_id = reg.screenshot_public_id
    async with in_transaction() as conn:
        if reg.final_acceptance_id:
            await FinalAcceptance.filter(id=reg.final_acceptance_id).using_db(conn).update(
                payment_status="pending", payment_registration_id=None
            )
        await notifications.notify(
            background_tasks, notifications.payment_rejected(reg, reason), using_db=conn
        )
        await reg.delete(using_db=conn)

    await storage.delete_quietly(screenshot_id, "image")
    logger.info("[payments] registration %s rejected: %s", registration_id, reason)
    return {"success": True, "message": "Payment rejected"}
