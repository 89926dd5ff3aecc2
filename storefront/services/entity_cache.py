from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import structlog
from pydantic import BaseModel

from storefront.errors import StaleReferenceError, StorefrontError
from storefront.external.backend_api import BackendAPI
from storefront.state import Liveness, Store


logger = structlog.get_logger(__name__)


T = TypeVar('T', bound=BaseModel)


@dataclass(frozen=True)
class CollectionState(Generic[T]):
    items: tuple[T, ...] = ()
    is_loading: bool = False


class EntityCache(Generic[T]):
    """Read-through cache over one backend collection.

    ``_reconcile`` replaces the collection wholesale with whatever the backend
    returned; overlapping fetches are not merged, the last one to resolve wins.
    Mutations only call the backend, except for the explicit ``_patch`` used by
    optimistic moderation updates. Once ``liveness`` is disposed, responses that
    arrive later no longer touch the store.
    """

    entity_name = 'entity'

    def __init__(self, api: BackendAPI, liveness: Liveness | None = None) -> None:
        self.api = api
        self.liveness = liveness or Liveness()
        self.store: Store[CollectionState[T]] = Store(CollectionState(), name=self.entity_name)
        self._in_flight = 0

    @property
    def items(self) -> list[T]:
        return list(self.store.state.items)

    @property
    def is_loading(self) -> bool:
        return self.store.state.is_loading

    def subscribe(self, listener: Callable[[CollectionState[T], CollectionState[T]], None]) -> Callable[[], None]:
        return self.store.subscribe(listener)

    def get(self, entity_id: str) -> T | None:
        for item in self.store.state.items:
            if item.id == entity_id:
                return item
        return None

    def resolve(self, entity_id: str) -> T:
        item = self.get(entity_id)
        if item is None:
            raise StaleReferenceError(self.entity_name, entity_id)
        return item

    @asynccontextmanager
    async def _loading(self) -> AsyncIterator[None]:
        self._in_flight += 1
        self.store.set(is_loading=True)
        try:
            yield
        finally:
            self._in_flight -= 1
            if self.liveness.alive:
                self.store.set(is_loading=self._in_flight > 0)

    async def _reconcile(
        self,
        fetch: Callable[[], Awaitable[Iterable[dict[str, Any]]]],
        mapper: Callable[[dict[str, Any]], T],
    ) -> list[T]:
        async with self._loading():
            try:
                rows = await fetch()
            except StorefrontError as exc:
                logger.warning('Failed to fetch collection', entity=self.entity_name, exc=exc)
                raise
            items = tuple(mapper(row) for row in rows)
            if self.liveness.alive:
                self.store.set(items=items)
        return list(items)

    async def _call(self, request: Callable[[], Awaitable[Any]]) -> Any:
        async with self._loading():
            return await request()

    def filter_by_status(self, status: str = 'all') -> list[T]:
        if status == 'all':
            return self.items
        return [item for item in self.store.state.items if getattr(item, 'status', None) == status]

    def _patch(self, entity_id: str, **changes: Any) -> T | None:
        if not self.liveness.alive:
            return None
        patched: T | None = None
        updated: list[T] = []
        for item in self.store.state.items:
            if item.id == entity_id:
                patched = item.model_copy(update=changes)
                updated.append(patched)
            else:
                updated.append(item)
        if patched is not None:
            self.store.set(items=tuple(updated))
        return patched
