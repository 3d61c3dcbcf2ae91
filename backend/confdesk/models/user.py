# confdesk/models/user.py
"""
Database model for users.
Represents an account of any role (Author, Editor, Reviewer, Admin) with
its credentials, email-verification state and password-reset OTP.
"""
import uuid
from enum import Enum
from tortoise import fields, models


class Role(str, Enum):
    AUTHOR = "Author"
    EDITOR = "Editor"
    REVIEWER = "Reviewer"
    ADMIN = "Admin"


class User(models.Model):
    """
    User database model.

    Relationships:
    - Papers edited (via PaperSubmission.assigned_editor)
    - Reviews written (via ReviewerReview.reviewer)

    Security:
    - Password is stored as an Argon2 hash
    - temp_password holds generated credentials only until they are mailed
      to an editor/reviewer account created by staff
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    username = fields.CharField(max_length=256, unique=True, index=True)
    email = fields.CharField(max_length=256, unique=True, index=True)  # Stored lower-cased
    password_hash = fields.CharField(max_length=255)
    role = fields.CharEnumField(Role, max_length=16, default=Role.AUTHOR)

    verified = fields.BooleanField(default=False)
    verification_token = fields.CharField(max_length=128, null=True, index=True)
    verification_expires = fields.DatetimeField(null=True)
    reset_otp = fields.CharField(max_length=16, null=True)
    reset_otp_expires = fields.DatetimeField(null=True)
    temp_password = fields.CharField(max_length=64, null=True)

    country = fields.CharField(max_length=64, null=True)
    user_type = fields.CharField(max_length=16, null=True)  # student / faculty / scholar
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "users"

    def public_dict(self) -> dict:
        return {
            "id": str(self.id),
            "username": self.username,
            "email": self.email,
            "role": self.role.value,
            "verified": self.verified,
            "country": self.country,
            "userType": self.user_type,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
