from __future__ import annotations

from typing import Any


GENERIC_RETRY_MESSAGE = 'Something went wrong. Please try again.'
SESSION_EXPIRED_MESSAGE = 'Your session has expired. Please log in again.'


class StorefrontError(Exception):
    """Base for every failure surfaced to callers of the storefront core."""

    default_detail = GENERIC_RETRY_MESSAGE

    def __init__(
        self,
        detail: str | dict[str, Any] | None = None,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        self.detail = detail if detail is not None else self.default_detail
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(self.message)

    @property
    def message(self) -> str:
        if isinstance(self.detail, dict):
            return str(self.detail.get('message') or self.default_detail)
        return str(self.detail)


class AuthExpiredError(StorefrontError):
    default_detail = SESSION_EXPIRED_MESSAGE


class ValidationError(StorefrontError):
    """Missing or invalid input, caught before anything is sent to the backend."""

    default_detail = 'Missing required information.'


class IllegalTransitionError(ValidationError):
    default_detail = 'This item has already been processed.'


class LicenseDeleteRefusedError(ValidationError):
    default_detail = 'You can only delete unused keys.'


class BusinessRuleError(StorefrontError):
    """The backend rejected the mutation; its message is surfaced verbatim."""


class PermissionDeniedError(BusinessRuleError):
    default_detail = 'You do not have permission to perform this action.'


class TransientNetworkError(StorefrontError):
    default_detail = GENERIC_RETRY_MESSAGE


class StaleReferenceError(StorefrontError):
    default_detail = 'This item is no longer available.'

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f'{entity} {entity_id} is no longer available')
