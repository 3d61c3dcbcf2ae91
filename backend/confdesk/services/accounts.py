# confdesk/services/accounts.py
"""
Staff account creation shared by the admin (editors) and editor (reviewers)
routers. Staff accounts are verified on creation; the generated password is
kept in `temp_password` only until the user changes or resets it.
"""
import logging

from fastapi import BackgroundTasks, HTTPException, status

from confdesk.core.security import generate_password, hash_password
from confdesk.models.user import Role, User
from confdesk.schemas.admin import CreateStaffIn
from confdesk.services import notifications

logger = logging.getLogger(__name__)


async def unique_username(base: str) -> str:
    base = base or "user"
    candidate, suffix = base, 1
    while await User.filter(username=candidate).exists():
        suffix += 1
        candidate = f"{base}{suffix}"
    return candidate


async def create_staff_account(body: CreateStaffIn, role: Role, background_tasks: BackgroundTasks) -> User:
    email = (body.email or "").strip().lower()
    if not email or "@" not in email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A valid email is required")
    if await User.filter(email=email).exists():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")

    password = body.password or generate_password()
    user = await User.create(
        username=await unique_username((body.username or email.split("@", 1)[0]).strip()),
        email=email,
        password_hash=hash_password(password),
        role=role,
        verified=True,
        temp_password=password,
    )
    await notifications.notify(background_tasks, notifications.staff_credentials(user, password))
    logger.info("[accounts] created %s account %s", role.value, user.email)
    return user
