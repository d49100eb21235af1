import math


def page_window(page, limit, *, default: int, maximum: int) -> tuple[int, int]:
    page = max(1, int(page or 1))
    limit = min(maximum, max(1, int(limit or default)))
    return page, limit


def paginate(qs, page, limit, *, default: int, maximum: int) -> tuple[list, dict]:
    """Slice ``qs`` to one page and describe the page set.

    ``page`` is 1-indexed and ``limit`` is clamped to ``maximum``; the
    clamped value is echoed back.  ``totalPages`` is computed from the
    filtered count, so it is 0 for an empty result.
    """
    page, limit = page_window(page, limit, default=default, maximum=maximum)
    total = qs.count()
    start = (page - 1) * limit
    items = list(qs[start:start + limit])
    meta = {
        'total': total,
        'totalPages': math.ceil(total / limit),
        'currentPage': page,
        'limit': limit,
    }
    return items, meta
