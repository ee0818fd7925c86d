"""Application-level coordination between the record store and the view."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

from .models import User
from .store import RecordStore
from .view import SortKey, ViewParams, ViewResult, derive_view

logger = logging.getLogger("roster.registry")

ViewListener = Callable[[ViewResult], None]


class UserRegistry:
    """Owns the record snapshot and view parameters for one caller.

    Mutations are awaited to completion before the full record set is
    re-read, after which every subscribed listener receives the recomputed
    view. View parameter changes recompute the view from the current snapshot
    without touching the store. A failed mutation propagates its
    :class:`~roster.errors.PersistenceError` and leaves the snapshot as it was.

    The snapshot starts empty; callers must ``await refresh()`` once before the
    first render to load records already held by the store.
    """

    def __init__(self, store: RecordStore, *, params: Optional[ViewParams] = None) -> None:
        self._store = store
        self._params = params or ViewParams()
        self._records: Tuple[User, ...] = ()
        self._view = derive_view(self._records, self._params)
        self._listeners: List[ViewListener] = []

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def params(self) -> ViewParams:
        return self._params

    @property
    def records(self) -> Tuple[User, ...]:
        return self._records

    @property
    def view(self) -> ViewResult:
        return self._view

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        """Register ``listener`` for view updates and return an unsubscribe hook."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Record mutations
    # ------------------------------------------------------------------
    async def refresh(self) -> ViewResult:
        """Re-read every record from the store and publish the new view."""

        self._records = tuple(await self._store.list_all())
        return self._publish()

    async def create_user(self, record: User) -> User:
        created = await self._store.create(record)
        await self.refresh()
        return created

    async def update_user(self, record: User) -> User:
        stored = await self._store.update(record)
        await self.refresh()
        return stored

    async def delete_user(self, user_id: int) -> None:
        await self._store.delete(user_id)
        await self.refresh()

    # ------------------------------------------------------------------
    # View parameters
    # ------------------------------------------------------------------
    def set_params(self, params: ViewParams) -> ViewResult:
        self._params = params
        return self._publish()

    def set_search_term(self, term: str) -> ViewResult:
        return self.set_params(self._params.with_search(term))

    def toggle_creation_order(self) -> ViewResult:
        return self.set_params(self._params.toggle(SortKey.CREATED_AT))

    def toggle_age_order(self) -> ViewResult:
        return self.set_params(self._params.toggle(SortKey.AGE))

    def toggle_name_order(self) -> ViewResult:
        return self.set_params(self._params.toggle(SortKey.NAME))

    def set_page(self, page: int) -> ViewResult:
        return self.set_params(self._params.with_page(page))

    def set_page_size(self, page_size: int) -> ViewResult:
        return self.set_params(self._params.with_page_size(page_size))

    def _publish(self) -> ViewResult:
        self._view = derive_view(self._records, self._params)
        for listener in list(self._listeners):
            listener(self._view)
        logger.debug(
            "Published view: %s of %s record(s), page %s/%s",
            self._view.filtered_count,
            self._view.total_count,
            self._view.current_page,
            self._view.total_pages,
        )
        return self._view


__all__ = ["UserRegistry", "ViewListener"]
