# confdesk/models/payment.py
"""
Post-acceptance registration models.

FinalAcceptance is written when the editor accepts a paper. An author then
files a PaymentRegistration; once an admin verifies it, a
PaymentDoneFinalUser is derived from it. The promotion is one-way.
"""
import uuid
import secrets
import string
import datetime as dt
from tortoise import fields, models


class FinalAcceptance(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    paper = fields.OneToOneField("models.PaperSubmission", related_name="final_acceptance", on_delete=fields.CASCADE)
    submission_id = fields.CharField(max_length=32, unique=True, index=True)
    paper_title = fields.CharField(max_length=512)
    author_name = fields.CharField(max_length=256)
    author_email = fields.CharField(max_length=256, index=True)
    pdf_url = fields.CharField(max_length=1024, null=True)
    category = fields.CharField(max_length=128, null=True)
    payment_status = fields.CharField(max_length=16, default="pending")  # pending / paid / verified
    payment_registration_id = fields.UUIDField(null=True)
    acceptance_date = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "final_acceptances"


class PaymentRegistration(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    user = fields.ForeignKeyField("models.User", related_name="payment_registrations", null=True, on_delete=fields.SET_NULL)
    author_email = fields.CharField(max_length=256, index=True)
    author_name = fields.CharField(max_length=256)
    final_acceptance = fields.ForeignKeyField(
        "models.FinalAcceptance", related_name="registrations", null=True, on_delete=fields.SET_NULL
    )
    submission_id = fields.CharField(max_length=32, null=True, index=True)
    paper_title = fields.CharField(max_length=512)
    paper_url = fields.CharField(max_length=1024, null=True)

    institution = fields.CharField(max_length=256, default="To be updated")
    address = fields.CharField(max_length=512, default="To be updated")
    country = fields.CharField(max_length=64, default="To be updated")

    payment_method = fields.CharField(max_length=32)
    transaction_id = fields.CharField(max_length=128, null=True)
    amount = fields.DecimalField(max_digits=12, decimal_places=2)
    currency = fields.CharField(max_length=8, default="INR")
    screenshot_url = fields.CharField(max_length=1024, null=True)
    screenshot_public_id = fields.CharField(max_length=512, null=True)
    registration_category = fields.CharField(max_length=32)

    payment_status = fields.CharField(max_length=16, default="pending", index=True)  # pending / verified
    verified_by = fields.ForeignKeyField("models.User", related_name="verified_payments", null=True, on_delete=fields.SET_NULL)
    verified_at = fields.DatetimeField(null=True)
    verification_notes = fields.TextField(null=True)
    registration_date = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "payment_registrations"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "authorEmail": self.author_email,
            "authorName": self.author_name,
            "submissionId": self.submission_id,
            "paperTitle": self.paper_title,
            "institution": self.institution,
            "paymentMethod": self.payment_method,
            "transactionId": self.transaction_id,
            "amount": float(self.amount),
            "currency": self.currency,
            "paymentScreenshot": self.screenshot_url,
            "registrationCategory": self.registration_category,
            "paymentStatus": self.payment_status,
            "registrationDate": self.registration_date.isoformat() if self.registration_date else None,
            "verifiedAt": self.verified_at.isoformat() if self.verified_at else None,
            "verificationNotes": self.verification_notes,
        }


def new_registration_number(conference_code: str) -> str:
    """e.g. ICMBNT2026-REG-7QXK123456"""
    alphabet = string.ascii_uppercase + string.digits
    random_part = "".join(secrets.choice(alphabet) for _ in range(4))
    stamp = str(int(dt.datetime.now(dt.timezone.utc).timestamp() * 1000))[-6:]
    return f"{conference_code}-REG-{random_part}{stamp}"


class PaymentDoneFinalUser(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    registration_number = fields.CharField(max_length=64, unique=True)
    payment_registration = fields.OneToOneField(
        "models.PaymentRegistration", related_name="final_user", null=True, on_delete=fields.SET_NULL
    )
    user = fields.ForeignKeyField("models.User", related_name="final_registrations", null=True, on_delete=fields.SET_NULL)
    author_email = fields.CharField(max_length=256, index=True)
    author_name = fields.CharField(max_length=256)
    submission_id = fields.CharField(max_length=32, null=True)
    paper_title = fields.CharField(max_length=512)
    paper_url = fields.CharField(max_length=1024, null=True)
    payment_method = fields.CharField(max_length=32)
    transaction_id = fields.CharField(max_length=128, null=True)
    amount = fields.DecimalField(max_digits=12, decimal_places=2)
    currency = fields.CharField(max_length=8, default="INR")
    registration_category = fields.CharField(max_length=32)
    verified_by = fields.ForeignKeyField("models.User", related_name="verified_final_users", null=True, on_delete=fields.SET_NULL)
    verified_at = fields.DatetimeField(auto_now_add=True)
    verification_notes = fields.TextField(null=True)

    class Meta:
        table = "payment_done_final_users"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "registrationNumber": self.registration_number,
            "authorEmail": self.author_email,
            "authorName": self.author_name,
            "submissionId": self.submission_id,
            "paperTitle": self.paper_title,
            "amount": float(self.amount),
            "currency": self.currency,
            "registrationCategory": self.registration_category,
            "verifiedAt": self.verified_at.isoformat() if self.verified_at else None,
        }
