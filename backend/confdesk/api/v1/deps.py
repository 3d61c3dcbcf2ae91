# confdesk/api/v1/deps.py
import jwt
from fastapi import Header, HTTPException, Request, status
from confdesk.core.security import decode_access_token
from confdesk.models.user import User


def _extract_token(request: Request, authorization: str | None) -> str | None:
    # 1) Prioritize Authorization: Bearer xxx
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
        if token:
            return token
    # 2) Secondly HttpOnly Cookie: accessToken
    return request.cookies.get("accessToken")


async def get_current_user(
    request: Request,
    authorization: str | None = Header(default=None),
) -> User:
    """
    FastAPI dependency to get the current authenticated user.

    The JWT is read from the Authorization header (Bearer token) or, as a
    fallback, from the `accessToken` HttpOnly cookie set at login.

    Raises:
        HTTPException (401): If no token is provided (AUTH_REQUIRED)
        HTTPException (401): If token is invalid or expired (AUTH_INVALID_TOKEN)
        HTTPException (401): If user not found in database (AUTH_USER_NOT_FOUND)

    Role checks are not done here; routes use `core.policy.authorize`.
    """
    token = _extract_token(request, authorization)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="AUTH_REQUIRED")

    try:
        payload = decode_access_token(token)
        user_id: str = payload.get("sub")
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="AUTH_INVALID_TOKEN")

    user = await User.get_or_none(id=user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="AUTH_USER_NOT_FOUND")
    return user
