"""Pagination - page/limit arithmetic for the list endpoint. Pure, no IO."""

import math

MAX_ROW_OFFSET = 2**63 - 1  # BIGINT ceiling for OFFSET


def page_offset(page: int, limit: int) -> int:
    """Offset of the first row on a 1-based page."""
    return max(page - 1, 0) * limit


def offset_in_range(offset: int) -> bool:
    return 0 <= offset <= MAX_ROW_OFFSET


def count_pages(total: int, limit: int) -> int:
    """Number of pages needed for total rows. Zero rows means zero pages."""
    if total <= 0 or limit <= 0:
        return 0
    return math.ceil(total / limit)
