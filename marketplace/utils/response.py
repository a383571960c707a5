from fastapi.encoders import jsonable_encoder
from typing import Any, Optional, Dict

from marketplace.services.listing import Page


def success(
    data: Optional[Any] = None,
    message: str = "Success",
    meta: Optional[Dict] = None,
):
    response = {
        "success": True,
        "message": message,
        "data": data,
        "errors": None,
    }

    if meta is not None:
        response["meta"] = meta

    # Ensure SQLAlchemy models, datetimes, enums etc. are JSON-serializable.
    return jsonable_encoder(response)


def paginated_response(
    items,
    total: int,
    page: Page,
    items_key: str = "items",
    message: str = "Success",
):
    return success(
        data={
            items_key: items,
            "pagination": page.meta(total),
        },
        message=message,
    )
