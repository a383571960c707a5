from fastapi import HTTPException, status
from typing import Any, List, Optional


class EmailAlreadyExists(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists"
        )


class InvalidCredentials(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )


class NotAuthenticated(HTTPException):
    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail
        )


class ShopNotFound(HTTPException):
    def __init__(self, detail: str = "Shop not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail
        )


class ProductNotFound(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found"
        )


class ReviewNotFound(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Review not found"
        )


class CategoryNotFound(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found"
        )


class TargetNotFound(HTTPException):
    def __init__(self, target_type: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{target_type.lower()} not found"
        )


class NotResourceOwner(HTTPException):
    """Authenticated actor is not the owner/author of the resource."""

    def __init__(self, action: str, resource: str):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You do not have permission to {action} this {resource}"
        )


class DuplicateReview(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="You have already reviewed this"
        )


class ReviewChanged(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="Review was changed by another request. Please try again."
        )


class ShopAlreadyExists(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="You already have a shop. Please update the existing one."
        )


class CategoryAlreadyExists(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="Category already exists"
        )


class APIError(Exception):
    def __init__(self, status_code: int, message: str, errors: Optional[List[Any]] = None):
        self.status_code = status_code
        self.message = message
        self.errors = errors or []


class ValidationFailed(APIError):
    """400 with per-field messages, raised from service-level checks."""

    def __init__(self, field: str, message: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            message="Validation failed",
            errors=[{"field": field, "message": message}],
        )
