# tiretrack/utils/pagination.py
"""Page/limit helpers shared by every paginated list."""

import math

from tiretrack.exceptions import ValidationError

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def calculate_skip(page: int, limit: int) -> int:
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1 or limit > MAX_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}")
    return (page - 1) * limit


def paginate(data: list, total: int, page: int = 1, limit: int = DEFAULT_LIMIT) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "data": data,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }
