# confdesk/api/v1/routers/auth.py
import datetime as dt

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response, status

from confdesk.api.v1.deps import get_current_user
from confdesk.config import settings
from confdesk.core.security import (
    create_access_token,
    hash_password,
    is_expired,
    new_reset_otp,
    new_verification_token,
    utc_now,
    verify_password,
)
from confdesk.core.workflow import PaperStatus
from confdesk.models.paper import PaperSubmission
from confdesk.models.user import Role, User
from confdesk.schemas.auth import (
    ChangePasswordIn,
    CountryIn,
    EmailIn,
    LoginIn,
    RegisterIn,
    ResetPasswordIn,
    VerifyEmailIn,
)
from confdesk.services import notifications
from confdesk.services.accounts import unique_username

router = APIRouter(prefix="/auth", tags=["auth"])


def _normalize_email(value: str | None) -> str:
    return (value or "").strip().lower()


def _bad_request(message: str):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: RegisterIn, background_tasks: BackgroundTasks):
    """
    Register a new Author account.

    The account starts unverified; a verification link valid for
    VERIFICATION_TTL_HOURS is mailed. Mail failures never fail the request.

    Errors:
        400: Missing email/password, non-Author role, or email already registered
    """
    email = _normalize_email(body.email)
    if not email or not body.password:
        _bad_request("Email and password are required")
    if "@" not in email:
        _bad_request("Invalid email address")
    if body.role and body.role != Role.AUTHOR.value:
        _bad_request("Only authors can self-register")
    if await User.filter(email=email).exists():
        _bad_request("User already exists")

    token = new_verification_token()
    user = await User.create(
        username=await unique_username((body.username or email.split("@", 1)[0]).strip()),
        email=email,
        password_hash=hash_password(body.password),
        role=Role.AUTHOR,
        verification_token=token,
        verification_expires=utc_now() + dt.timedelta(hours=settings.verification_ttl_hours),
        country=body.country,
        user_type=body.userType,
    )
    await notifications.notify(background_tasks, notifications.verification(user, token))
    return {
        "success": True,
        "message": "Registration successful. Please check your email to verify your account.",
        "data": user.public_dict(),
    }


@router.post("/login")
async def login(payload: LoginIn, response: Response):
    """
    Authenticate with email and password.

    Unverified accounts get HTTP 200 with success=false and
    needsVerification=true so the frontend can offer to resend the link.
    On success the JWT is returned and also set as the `accessToken`
    HttpOnly cookie.
    """
    email = _normalize_email(payload.email)
    if not email or not payload.password:
        _bad_request("Email and password are required")

    user = await User.get_or_none(email=email)
    if not user or not verify_password(payload.password, user.password_hash):
        _bad_request("Invalid email or password")

    if not user.verified:
        return {
            "success": False,
            "needsVerification": True,
            "message": "Please verify your email before logging in.",
            "email": user.email,
        }

    token = create_access_token(str(user.id), user.role.value, email=user.email, username=user.username)
    response.set_cookie("accessToken", token, httponly=True, secure=False, samesite="lax")
    return {
        "success": True,
        "message": "Login successful",
        "token": token,
        "user": user.public_dict(),
        "data": {"user": user.public_dict(), "accessToken": token},
    }


async def _verify(token: str | None, email: str | None) -> dict:
    if not token:
        _bad_request("Verification token is required")

    filters = {"verification_token": token}
    if email:
        filters["email"] = _normalize_email(email)
    user = await User.get_or_none(**filters)
    # An unknown or expired token leaves the row untouched
    if not user or is_expired(user.verification_expires):
        _bad_request("Invalid or expired verification token")

    user.verified = True
    user.verification_token = None
    user.verification_expires = None
    await user.save(update_fields=["verified", "verification_token", "verification_expires"])
    return {"success": True, "message": "Email verified successfully", "data": user.public_dict()}


@router.get("/verify-email")
async def verify_email_link(token: str | None = Query(default=None), email: str | None = Query(default=None)):
    return await _verify(token, email)


@router.post("/verify-email")
async def verify_email(body: VerifyEmailIn):
    return await _verify(body.token, body.email)


@router.post("/resend-verification")
async def resend_verification(body: EmailIn, background_tasks: BackgroundTasks):
    email = _normalize_email(body.email)
    if not email:
        _bad_request("Email is required")
    user = await User.get_or_none(email=email)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.verified:
        _bad_request("Email is already verified")

    user.verification_token = new_verification_token()
    user.verification_expires = utc_now() + dt.timedelta(hours=settings.verification_ttl_hours)
    await user.save(update_fields=["verification_token", "verification_expires"])
    await notifications.notify(background_tasks, notifications.verification(user, user.verification_token))
    return {"success": True, "message": "Verification email sent"}


@router.post("/forgot-password")
async def forgot_password(body: EmailIn, background_tasks: BackgroundTasks):
    """Mail a 6-digit OTP valid for RESET_OTP_TTL_MINUTES."""
    email = _normalize_email(body.email)
    if not email:
        _bad_request("Email is required")
    user = await User.get_or_none(email=email)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    user.reset_otp = new_reset_otp()
    user.reset_otp_expires = utc_now() + dt.timedelta(minutes=settings.reset_otp_ttl_minutes)
    await user.save(update_fields=["reset_otp", "reset_otp_expires"])
    await notifications.notify(background_tasks, notifications.reset_otp(user, user.reset_otp))
    return {"success": True, "message": "Password reset code sent to your email"}


@router.post("/reset-password")
async def reset_password(body: ResetPasswordIn):
    email = _normalize_email(body.email)
    if not email or not body.otp or not body.newPassword:
        _bad_request("Email, OTP and new password are required")

    user = await User.get_or_none(email=email)
    if not user or not user.reset_otp or user.reset_otp != body.otp.strip() or is_expired(user.reset_otp_expires):
        _bad_request("Invalid or expired OTP")

    user.password_hash = hash_password(body.newPassword)
    user.reset_otp = None
    user.reset_otp_expires = None
    user.temp_password = None
    await user.save(update_fields=["password_hash", "reset_otp", "reset_otp_expires", "temp_password"])
    return {"success": True, "message": "Password reset successful"}


@router.get("/me")
async def me(user: User = Depends(get_current_user)):
    return {"success": True, "data": user.public_dict()}


@router.post("/logout")
async def logout(response: Response):
    """Clear the accessToken cookie. The JWT itself stays valid until it expires."""
    response.delete_cookie("accessToken")
    return {"success": True}


@router.post("/change-password")
async def change_password(body: ChangePasswordIn, user: User = Depends(get_current_user)):
    if not verify_password(body.currentPassword, user.password_hash):
        _bad_request("Current password is incorrect")
    user.password_hash = hash_password(body.newPassword)
    user.temp_password = None
    await user.save(update_fields=["password_hash", "temp_password"])
    return {"success": True, "message": "Password changed"}


@router.put("/country")
async def update_country(body: CountryIn, user: User = Depends(get_current_user)):
    country = (body.country or "").strip()
    if not country:
        _bad_request("Country is required")
    user.country = country
    await user.save(update_fields=["country"])
    return {"success": True, "data": user.public_dict()}


@router.get("/acceptance-status")
async def check_acceptance_status(
    email: str | None = Query(default=None),
    user: User = Depends(get_current_user),
):
    """Whether the caller (staff: any author) has an accepted or published paper."""
    target = user.email
    if email and user.role in (Role.EDITOR, Role.ADMIN):
        target = _normalize_email(email)
    paper = await PaperSubmission.filter(
        email=target, status__in=[PaperStatus.ACCEPTED, PaperStatus.PUBLISHED]
    ).first()
    return {
        "success": True,
        "data": {
            "email": target,
            "hasAcceptedPaper": paper is not None,
            "submissionId": paper.submission_id if paper else None,
            "paperTitle": paper.title if paper else None,
        },
    }
