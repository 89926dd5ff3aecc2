from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from storefront.errors import ValidationError
from storefront.external.backend_api import SCOPE_MINE
from storefront.schemas.balance_request import (
    REQUEST_PENDING,
    BalanceRequest,
    BalanceTopUpRequest,
    map_balance_request,
)
from storefront.schemas.common import MANUAL_PAYMENT_METHODS, Upload
from storefront.services.entity_cache import EntityCache
from storefront.utils.money import parse_positive_amount


def build_top_up_request(
    *,
    amount: object,
    payment_method: str | None,
    transaction_id: str | None,
    screenshot: Upload | None = None,
) -> BalanceTopUpRequest:
    parsed_amount = parse_positive_amount(amount)
    if parsed_amount is None:
        raise ValidationError('Enter valid amount.')
    if payment_method not in MANUAL_PAYMENT_METHODS:
        raise ValidationError('Select payment method.')
    cleaned_transaction_id = (transaction_id or '').strip()
    if not cleaned_transaction_id:
        raise ValidationError('Enter transaction ID.')

    return BalanceTopUpRequest(
        amount=parsed_amount,
        payment_method=payment_method,
        transaction_id=cleaned_transaction_id,
        payment_screenshot=screenshot,
    )


class BalanceRequestCache(EntityCache[BalanceRequest]):
    entity_name = 'balance_request'

    async def fetch_all(self, scope: str = SCOPE_MINE) -> list[BalanceRequest]:
        return await self._reconcile(lambda: self.api.list_balance_requests(scope), map_balance_request)

    async def create(self, request: BalanceTopUpRequest) -> Any:
        return await self._call(lambda: self.api.create_balance_request(request))

    async def approve(self, request_id: str) -> Any:
        return await self._call(lambda: self.api.approve_balance_request(request_id))

    async def reject(self, request_id: str) -> Any:
        return await self._call(lambda: self.api.reject_balance_request(request_id))

    def apply_status(self, request_id: str, status: str) -> BalanceRequest | None:
        return self._patch(request_id, status=status, processed_at=datetime.now(UTC))

    def has_pending(self, user_id: str) -> bool:
        return any(r.user_id == user_id and r.status == REQUEST_PENDING for r in self.items)
