import structlog
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from marketplace.core.exceptions import NotAuthenticated
from marketplace.core.security import decode_token
from marketplace.db.session import get_db
from marketplace.models.user import User, UserType

logger = structlog.get_logger()


def _token_from_request(request: Request):
    token = request.cookies.get("access_token")
    if token:
        return token

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1]
    return None


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """Get current authenticated user from cookie or bearer token."""
    token = _token_from_request(request)
    if not token:
        raise NotAuthenticated()

    payload = decode_token(token)
    if payload.get("type") != "access":
        raise NotAuthenticated("Invalid token type")

    user_id = payload.get("sub")
    if not user_id:
        raise NotAuthenticated("Invalid authentication credentials")

    user = db.query(User).filter(User.id == int(user_id)).first()
    if not user:
        raise NotAuthenticated("User no longer exists")

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )

    return user


def require_admin(
    request: Request,
    current_user: User = Depends(get_current_user),
) -> User:
    if current_user.user_type != UserType.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )

    logger.info(
        "admin_action",
        action=f"{request.method} {request.url.path}",
        admin_user_id=current_user.id,
    )
    return current_user
