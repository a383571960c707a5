from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.api.deps import get_current_user
from marketplace.core.config import settings
from marketplace.core.exceptions import EmailAlreadyExists, InvalidCredentials
from marketplace.core.rate_limiter import limiter
from marketplace.core.security import (
    create_access_token,
    create_token_pair,
    decode_token,
    hash_password,
    verify_password,
)
from marketplace.db.session import get_db
from marketplace.models.user import User, UserType
from marketplace.schemas.user import RefreshTokenRequest, UserCreate, UserLogin, UserResponse, UserUpdate
from marketplace.utils.response import success

router = APIRouter()
logger = structlog.get_logger()


def _should_use_secure_cookies(request: Request) -> bool:
    if settings.ENVIRONMENT != "production":
        return False
    return request.url.scheme == "https"


def _set_auth_cookies(
    response: JSONResponse,
    request: Request,
    access_token: str,
    refresh_token: Optional[str] = None,
) -> None:
    secure = _should_use_secure_cookies(request)
    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        secure=secure,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
    )
    if refresh_token:
        response.set_cookie(
            key="refresh_token",
            value=refresh_token,
            httponly=True,
            secure=secure,
            samesite="lax",
            max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 86400,
            path="/",
        )


@router.post(
    "/register",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Register user account",
    responses={
        201: {"description": "Registration successful"},
        400: {"description": "Validation error"},
        409: {"description": "Email already registered"},
    },
)
@limiter.limit("5/minute")
def register(request: Request, user_in: UserCreate, db: Session = Depends(get_db)):
    if db.query(User).filter(User.email == user_in.email).first():
        raise EmailAlreadyExists()

    user = User(
        email=user_in.email,
        password_hash=hash_password(user_in.password),
        first_name=user_in.first_name,
        last_name=user_in.last_name,
        phone=user_in.phone,
        user_type=UserType(user_in.user_type),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise EmailAlreadyExists()
    db.refresh(user)

    logger.info("user_registered", user_id=user.id, user_type=user.user_type.value)

    return success(
        data={
            "user": UserResponse.model_validate(user),
            **create_token_pair(user.id),
        },
        message="Registration successful",
    )


@router.post(
    "/login",
    response_model=dict,
    summary="Login user",
    description="Authenticates a user and sets `access_token` and `refresh_token` as httpOnly cookies.",
    responses={
        200: {"description": "Login successful"},
        401: {"description": "Invalid credentials"},
        403: {"description": "Account inactive"},
    },
)
@limiter.limit("5/minute")
def login(request: Request, credentials: UserLogin, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == credentials.email).first()

    if not user or not verify_password(credentials.password, user.password_hash):
        logger.warning("login_failed", email=credentials.email)
        raise InvalidCredentials()

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )

    tokens = create_token_pair(user.id)
    response = JSONResponse(
        content=success(
            data={"user": UserResponse.model_validate(user), **tokens},
            message="Login successful",
        )
    )
    _set_auth_cookies(response, request, tokens["access_token"], tokens["refresh_token"])

    logger.info("user_logged_in", user_id=user.id)
    return response


@router.post("/refresh-token", response_model=dict)
@limiter.limit("20/minute")
def refresh_token(
    request: Request,
    body: Optional[RefreshTokenRequest] = None,
    db: Session = Depends(get_db),
):
    """Issue a new access token from a refresh token in the body or cookie."""
    token = body.refresh_token if body else request.cookies.get("refresh_token")
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token not found",
        )

    payload = decode_token(token)
    if payload.get("type") != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
        )

    user_id = payload.get("sub")
    user = db.query(User).filter(User.id == int(user_id)).first() if user_id else None
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    new_access_token = create_access_token(data={"sub": str(user.id)})
    response = JSONResponse(
        content=success(
            data={"access_token": new_access_token, "token_type": "bearer"},
            message="Token refreshed",
        )
    )
    _set_auth_cookies(response, request, new_access_token)
    return response


@router.post("/logout", response_model=dict)
def logout(request: Request):
    response = JSONResponse(content=success(message="Logout successful"))
    secure = _should_use_secure_cookies(request)
    response.delete_cookie(key="access_token", path="/", samesite="lax", secure=secure)
    response.delete_cookie(key="refresh_token", path="/", samesite="lax", secure=secure)
    return response


@router.get("/profile", response_model=dict)
@limiter.limit("60/minute")
def get_profile(request: Request, current_user: User = Depends(get_current_user)):
    return success(data=UserResponse.model_validate(current_user), message="Profile retrieved")


@router.put("/profile", response_model=dict)
@limiter.limit("20/minute")
def update_profile(
    request: Request,
    profile_in: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    for field, value in profile_in.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(current_user, field, value)

    db.commit()
    db.refresh(current_user)

    return success(data=UserResponse.model_validate(current_user), message="Profile updated")
