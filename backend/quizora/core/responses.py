# backend/quizora/core/responses.py
import math
from typing import Any, List, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from quizora.core.clock import utcnow


def _timestamp() -> str:
    return utcnow().isoformat() + "Z"


def success_response(data: Any = None, message: str = "Success", status_code: int = 200) -> JSONResponse:
    body = {
        "success": True,
        "message": message,
        "data": data,
        "statusCode": status_code,
        "timestamp": _timestamp(),
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def error_response(message: str = "Error", status_code: int = 500, errors: Optional[List[Any]] = None) -> JSONResponse:
    body = {
        "success": False,
        "message": message,
        "errors": errors or [],
        "statusCode": status_code,
        "timestamp": _timestamp(),
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def paginate(items: List[Any], page: int, limit: int, total: int) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "items": items,
        "pagination": {
            "currentPage": page,
            "totalPages": total_pages,
            "totalItems": total,
            "itemsPerPage": limit,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
    }
