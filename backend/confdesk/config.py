# confdesk/config.py
import os
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return default
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseModel):
    # General app settings
    APP_NAME: str = "Conference Paper Management API"
    env: str = os.getenv("ENV", "dev")

    # Host & Port settings
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))

    # CORS origins for frontend
    CORS_ORIGINS: list[str] = _env_list("CORS_ORIGINS", [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ])
    frontend_url: str = os.getenv("FRONTEND_URL", "http://localhost:5173")

    # Conference branding used in mails and registration numbers
    conference_name: str = os.getenv("CONFERENCE_NAME", "ICMBNT 2026")
    conference_code: str = os.getenv("CONFERENCE_CODE", "ICMBNT2026")

    # SMTP settings (notification dispatcher)
    smtp_host: str = os.getenv("SMTP_HOST", "smtp.gmail.com")
    smtp_port: int = int(os.getenv("SMTP_PORT", "587"))
    smtp_user: str | None = os.getenv("SMTP_USER")
    smtp_password: str | None = os.getenv("SMTP_PASSWORD")
    smtp_starttls: bool = _env_bool("SMTP_STARTTLS", "true")
    mail_from: str | None = os.getenv("MAIL_FROM")
    admin_notify_email: str | None = os.getenv("ADMIN_NOTIFY_EMAIL")

    # Cloudinary settings (object store for PDFs and screenshots)
    cloudinary_cloud_name: str | None = os.getenv("CLOUDINARY_CLOUD_NAME")
    cloudinary_api_key: str | None = os.getenv("CLOUDINARY_API_KEY")
    cloudinary_api_secret: str | None = os.getenv("CLOUDINARY_API_SECRET")
    cloudinary_api_base: str = os.getenv("CLOUDINARY_API_BASE", "https://api.cloudinary.com/v1_1")

    # Workflow knobs
    review_deadline_days: int = int(os.getenv("REVIEW_DEADLINE_DAYS", "3"))
    min_reviews_for_revision: int = int(os.getenv("MIN_REVIEWS_FOR_REVISION", "3"))
    verification_ttl_hours: int = int(os.getenv("VERIFICATION_TTL_HOURS", "48"))
    reset_otp_ttl_minutes: int = int(os.getenv("RESET_OTP_TTL_MINUTES", "10"))

    # Outbox (email + fan-out delivery)
    outbox_max_attempts: int = int(os.getenv("OUTBOX_MAX_ATTEMPTS", "5"))


settings = Settings()  # Instantiate configuration
