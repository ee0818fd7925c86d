"""Derive the filtered, sorted and paginated view over the user records.

Everything in this module is a pure function of its inputs. The record
sequence handed in is never mutated, so a stale snapshot can be derived from
as often as needed.

Sorting follows a precedence policy: three direction toggles exist but only
one of them is ever applied. ``creation_order=desc`` wins over
``age_order=desc``, which wins over the name ordering; with every toggle at
``asc`` the view is ordered by name ascending.
"""

from __future__ import annotations

import locale
import math
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .models import User

DEFAULT_PAGE_SIZE = 5
PAGE_SIZE_OPTIONS: Tuple[int, ...] = (5, 10, 15, 20)


class SortDirection(str, Enum):
    """Direction of a sort toggle."""

    ASC = "asc"
    DESC = "desc"

    def flipped(self) -> "SortDirection":
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


class SortKey(str, Enum):
    """Fields the view can be ordered by."""

    CREATED_AT = "created_at"
    AGE = "age"
    NAME = "name"


SortCriterion = Tuple[SortKey, SortDirection]


@dataclass(frozen=True)
class ViewParams:
    """Transient view state supplied by the caller on every derivation."""

    search_term: str = ""
    creation_order: SortDirection = SortDirection.ASC
    age_order: SortDirection = SortDirection.ASC
    name_order: SortDirection = SortDirection.ASC
    current_page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError("page_size must be a positive integer")

    def toggle(self, key: SortKey) -> "ViewParams":
        """Return a copy with the toggle for ``key`` flipped."""

        field_name = _TOGGLE_FIELDS[key]
        return replace(self, **{field_name: getattr(self, field_name).flipped()})

    def with_search(self, term: str) -> "ViewParams":
        return replace(self, search_term=term)

    def with_page(self, page: int) -> "ViewParams":
        return replace(self, current_page=page)

    def with_page_size(self, page_size: int) -> "ViewParams":
        # Changing the page size always starts over at the first page.
        return replace(self, page_size=page_size, current_page=1)


_TOGGLE_FIELDS = {
    SortKey.CREATED_AT: "creation_order",
    SortKey.AGE: "age_order",
    SortKey.NAME: "name_order",
}


@dataclass(frozen=True)
class ViewResult:
    """The page of records to display together with aggregate counts."""

    filtered_count: int
    total_count: int
    page_items: Tuple[User, ...]
    total_pages: int
    current_page: int
    page_size: int


# ----------------------------------------------------------------------
# Filtering
# ----------------------------------------------------------------------
def _searchable_values(user: User) -> Iterable[str]:
    for value in (user.name, user.email, user.age):
        if value is None:
            continue
        text = str(value)
        if text:
            yield text


def matches_search(user: User, search_term: str) -> bool:
    """Return ``True`` when ``search_term`` occurs in the name, email or age."""

    if not search_term:
        return True
    needle = search_term.casefold()
    return any(needle in value.casefold() for value in _searchable_values(user))


def filter_users(users: Iterable[User], search_term: str) -> List[User]:
    return [user for user in users if matches_search(user, search_term)]


# ----------------------------------------------------------------------
# Sorting
# ----------------------------------------------------------------------
def resolve_sort_criteria(params: ViewParams) -> Tuple[SortCriterion, ...]:
    """Select the single active sort criterion by fixed precedence."""

    if params.creation_order is SortDirection.DESC:
        return ((SortKey.CREATED_AT, SortDirection.DESC),)
    if params.age_order is SortDirection.DESC:
        return ((SortKey.AGE, SortDirection.DESC),)
    return ((SortKey.NAME, params.name_order),)


def _created_at_key(user: User) -> Optional[datetime]:
    value = user.created_at
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _age_key(user: User) -> Optional[float]:
    if user.age is None or isinstance(user.age, bool):
        return None
    try:
        return float(user.age)
    except (TypeError, ValueError):
        return None


def _name_key(user: User) -> Optional[Tuple[str, str]]:
    if user.name is None:
        return None
    name = str(user.name)
    return locale.strxfrm(name.casefold()), locale.strxfrm(name)


_KEY_FUNCTIONS: Dict[SortKey, Callable[[User], Any]] = {
    SortKey.CREATED_AT: _created_at_key,
    SortKey.AGE: _age_key,
    SortKey.NAME: _name_key,
}


def _stable_pass(users: List[User], key: SortKey, direction: SortDirection) -> List[User]:
    key_func = _KEY_FUNCTIONS[key]
    keyed = [(key_func(user), user) for user in users]
    present = [(value, user) for value, user in keyed if value is not None]
    missing = [user for value, user in keyed if value is None]
    present.sort(key=lambda item: item[0], reverse=direction is SortDirection.DESC)
    return [user for _, user in present] + missing


def sort_users(users: Iterable[User], criteria: Sequence[SortCriterion]) -> List[User]:
    """Order ``users`` by ``criteria``, highest priority first.

    Criteria are applied as successive stable passes from the lowest priority
    to the highest. Records lacking a value for a key sort after those that
    have one, in either direction.
    """

    ordered = list(users)
    for key, direction in reversed(criteria):
        ordered = _stable_pass(ordered, key, direction)
    return ordered


# ----------------------------------------------------------------------
# Pagination
# ----------------------------------------------------------------------
def count_pages(item_count: int, page_size: int) -> int:
    if page_size < 1:
        raise ValueError("page_size must be a positive integer")
    if item_count <= 0:
        return 0
    return math.ceil(item_count / page_size)


def paginate(items: Sequence[User], current_page: int, page_size: int) -> Tuple[User, ...]:
    """Return the slice for ``current_page``; out-of-range pages are empty."""

    if page_size < 1:
        raise ValueError("page_size must be a positive integer")
    if current_page < 1:
        return ()
    start = (current_page - 1) * page_size
    return tuple(items[start : start + page_size])


def clamp_page(current_page: int, total_pages: int) -> int:
    """Bring ``current_page`` back into ``[1, total_pages]``."""

    return min(max(current_page, 1), max(total_pages, 1))


def derive_view(records: Sequence[User], params: ViewParams) -> ViewResult:
    """Filter, sort and paginate ``records`` according to ``params``."""

    filtered = filter_users(records, params.search_term)
    ordered = sort_users(filtered, resolve_sort_criteria(params))
    return ViewResult(
        filtered_count=len(filtered),
        total_count=len(records),
        page_items=paginate(ordered, params.current_page, params.page_size),
        total_pages=count_pages(len(filtered), params.page_size),
        current_page=params.current_page,
        page_size=params.page_size,
    )


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "PAGE_SIZE_OPTIONS",
    "SortCriterion",
    "SortDirection",
    "SortKey",
    "ViewParams",
    "ViewResult",
    "clamp_page",
    "count_pages",
    "derive_view",
    "filter_users",
    "matches_search",
    "paginate",
    "resolve_sort_criteria",
    "sort_users",
]
