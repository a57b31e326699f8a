"""
Length-aware pagination for SQLAlchemy queries.

A page is fetched with two statements: a COUNT over the filtered query and the
ordered query limited to one page. The response metadata mirrors the usual
paginator JSON shape (current_page, data, from/to, first/last/prev/next URLs,
links, path, per_page, total).
"""
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fastapi.datastructures import URL
from sqlalchemy.orm import Query

PER_PAGE = 3

# Largest OFFSET a 64-bit integer column type accepts.
MAX_OFFSET = 2**63 - 1

# Pages shown on each side of the current page before the link list is elided.
ON_EACH_SIDE = 3


def resolve_page(raw: Optional[str], per_page: int = PER_PAGE) -> int:
    """Return the requested 1-based page number, falling back to 1 when unusable."""
    try:
        page = int((raw or "").strip())
    except ValueError:
        return 1
    if page < 1 or page * per_page > MAX_OFFSET:
        return 1
    return page


def fetch_page(query: Query, page: int, per_page: int = PER_PAGE) -> Tuple[List[Any], int]:
    """Run the count and the limited select for ``page``; ``query`` must already be ordered."""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * per_page).limit(per_page).all()
    return items, total


def last_page_for(total: int, per_page: int) -> int:
    return max(int(math.ceil(total / per_page)), 1)


def page_window(current: int, last: int, on_each_side: int = ON_EACH_SIDE) -> List[Optional[int]]:
    """
    Page numbers to render as links; ``None`` marks an elided gap.

    Small result sets list every page. Larger ones keep the first two and last two
    pages plus a slider around the current page.
    """
    if last < on_each_side * 2 + 8:
        return list(range(1, last + 1))

    window = on_each_side + 4
    head = [1, 2]
    tail = [last - 1, last]

    if current <= window:
        return list(range(1, window + on_each_side + 1)) + [None] + tail
    if current > last - window:
        return head + [None] + list(range(last - (window + on_each_side - 1), last + 1))
    return (
        head
        + [None]
        + list(range(current - on_each_side, current + on_each_side + 1))
        + [None]
        + tail
    )


def _page_url(url: URL, page: int) -> str:
    return str(url.include_query_params(page=page))


def build_page(
    url: URL,
    items: Sequence[Any],
    total: int,
    page: int,
    per_page: int = PER_PAGE,
) -> Dict[str, Any]:
    """Assemble the paginator payload for ``items`` found on ``page`` of ``total`` rows."""
    last_page = last_page_for(total, per_page)
    offset = (page - 1) * per_page

    prev_page_url = _page_url(url, page - 1) if page > 1 else None
    next_page_url = _page_url(url, page + 1) if page < last_page else None

    links: List[Dict[str, Any]] = [{"url": prev_page_url, "label": "&laquo; Previous", "active": False}]
    for number in page_window(page, last_page):
        if number is None:
            links.append({"url": None, "label": "...", "active": False})
        else:
            links.append({"url": _page_url(url, number), "label": str(number), "active": number == page})
    links.append({"url": next_page_url, "label": "Next &raquo;", "active": False})

    return {
        "current_page": page,
        "data": list(items),
        "first_page_url": _page_url(url, 1),
        "from": offset + 1 if items else None,
        "last_page": last_page,
        "last_page_url": _page_url(url, last_page),
        "links": links,
        "next_page_url": next_page_url,
        "path": str(url.replace(query="")),
        "per_page": per_page,
        "prev_page_url": prev_page_url,
        "to": offset + len(items) if items else None,
        "total": total,
    }
