from __future__ import annotations

from typing import Protocol


ROOT = '/'
LOGIN = '/login'
REGISTER = '/register'
SHOP = '/shop'
DASHBOARD = '/dashboard'
CHECKOUT = '/checkout'
ADD_BALANCE = '/add-balance'
BALANCE_HISTORY = '/balance-history'
ADMIN = '/admin'
ADMIN_ORDERS = '/admin/orders'
ADMIN_BALANCE = '/admin/balance'
ADMIN_PRODUCTS = '/admin/products'
ADMIN_LICENSES = '/admin/licenses'

PUBLIC_ENTRY_PATHS = frozenset({ROOT, LOGIN, REGISTER})
AUTHENTICATED_LANDING = DASHBOARD


def _normalize_path(path: str) -> str:
    value = (path or ROOT).split('?', 1)[0].split('#', 1)[0]
    if len(value) > 1:
        value = value.rstrip('/')
    return value or ROOT


def should_redirect_after_sync(current_path: str) -> bool:
    return _normalize_path(current_path) in PUBLIC_ENTRY_PATHS


def is_admin_path(path: str) -> bool:
    normalized = _normalize_path(path)
    return normalized == ADMIN or normalized.startswith(f'{ADMIN}/')


class Navigator(Protocol):
    @property
    def current_path(self) -> str: ...

    def navigate(self, path: str) -> None: ...


class Router:
    """In-memory navigator recording the location history."""

    def __init__(self, initial_path: str = ROOT) -> None:
        self.history: list[str] = [_normalize_path(initial_path)]

    @property
    def current_path(self) -> str:
        return self.history[-1]

    def navigate(self, path: str) -> None:
        normalized = _normalize_path(path)
        if normalized != self.current_path:
            self.history.append(normalized)
