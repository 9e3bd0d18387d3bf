"""
Pagination metadata shared by the list endpoints.
"""

import math


def page_meta(total: int, page: int, page_size: int) -> dict:
    """Fields common to every paginated list response."""
    total_pages = math.ceil(total / page_size) if total > 0 else 0
    return {
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1,
    }
