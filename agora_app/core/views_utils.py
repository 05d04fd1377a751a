"""Shared view utilities: actor lookup and pagination."""

from typing import Any

from django.core.paginator import Paginator
from django.http import HttpRequest


def get_username(request: HttpRequest) -> str:
    """Username of the signed-in administrator, or an empty string.

    Used as the ``actor`` recorded in the room audit log.
    """
    user = getattr(request, "user", None)
    if user is None or not getattr(user, "is_authenticated", False):
        return ""
    return str(user.get_username() or "").strip()


def pagination_window(paginator: Paginator, page_number: int) -> tuple[list[int], bool, bool]:
    """Compute a sliding page-number window for paginated views.

    Returns (page_numbers, show_first, show_last).
    """
    total_pages = paginator.num_pages
    if total_pages <= 10:
        return list(range(1, total_pages + 1)), False, False

    start = max(1, page_number - 2)
    end = min(total_pages, page_number + 2)
    page_numbers = list(range(start, end + 1))
    show_first = 1 not in page_numbers
    show_last = total_pages not in page_numbers
    return page_numbers, show_first, show_last


def paginate_and_build_context(
    items,
    page_param: str | None,
    per_page: int,
    *,
    page_url_prefix: str = "?page=",
) -> dict[str, Any]:
    """Build a pagination context dict for templates using _pagination.html."""
    paginator = Paginator(items, per_page)
    page_obj = paginator.get_page(page_param)
    page_numbers, show_first, show_last = pagination_window(paginator, page_obj.number)
    return {
        "paginator": paginator,
        "page_obj": page_obj,
        "is_paginated": paginator.num_pages > 1,
        "page_numbers": page_numbers,
        "show_first": show_first,
        "show_last": show_last,
        "page_url_prefix": page_url_prefix,
    }
