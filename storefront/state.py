from __future__ import annotations

import dataclasses
from collections.abc import Callable
from typing import Any, Generic, TypeVar

import structlog


logger = structlog.get_logger(__name__)

S = TypeVar('S')

Listener = Callable[[Any, Any], None]


class Store(Generic[S]):
    """Owned state container holding one frozen dataclass snapshot.

    Mutations replace the snapshot wholesale and notify subscribers with
    ``(new_state, previous_state)``. A failing subscriber is logged and does not
    affect the caller that mutated the store.
    """

    def __init__(self, initial: S, *, name: str = 'store') -> None:
        self._state = initial
        self._listeners: list[Listener] = []
        self.name = name

    @property
    def state(self) -> S:
        return self._state

    def get(self) -> S:
        return self._state

    def set(self, **changes: Any) -> S:
        return self.replace(dataclasses.replace(self._state, **changes))

    def update(self, fn: Callable[[S], S]) -> S:
        return self.replace(fn(self._state))

    def replace(self, new_state: S) -> S:
        previous = self._state
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state, previous)
            except Exception as exc:
                logger.warning('State listener failed', store=self.name, exc=exc)
        return new_state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


class Liveness:
    """Guards continuations of requests started before the owner was disposed."""

    def __init__(self) -> None:
        self._alive = True

    @property
    def alive(self) -> bool:
        return self._alive

    def dispose(self) -> None:
        self._alive = False
