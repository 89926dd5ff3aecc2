from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict

from storefront.schemas.common import ManualPaymentMethod, Upload
from storefront.utils.money import round2, to_decimal


REQUEST_PENDING = 'pending'
REQUEST_APPROVED = 'approved'
REQUEST_REJECTED = 'rejected'

REQUEST_TERMINAL_STATUSES = frozenset({REQUEST_APPROVED, REQUEST_REJECTED})

UNKNOWN_USER = 'Unknown'


class BalanceRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str = ''
    user_name: str = UNKNOWN_USER
    user_email: str = UNKNOWN_USER
    amount: Decimal
    payment_method: str = ''
    transaction_id: str = ''
    payment_screenshot: str | None = None
    status: str = REQUEST_PENDING
    created_at: datetime | None = None
    processed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in REQUEST_TERMINAL_STATUSES


class BalanceTopUpRequest(BaseModel):
    amount: Decimal
    payment_method: ManualPaymentMethod
    transaction_id: str
    payment_screenshot: Upload | None = None

    def to_form(self) -> dict[str, str]:
        return {
            'amount': str(round2(self.amount)),
            'paymentMethod': self.payment_method,
            'transactionId': self.transaction_id,
        }


def map_balance_request(raw: dict[str, Any]) -> BalanceRequest:
    user = raw.get('users') if isinstance(raw.get('users'), dict) else {}
    return BalanceRequest(
        id=str(raw['id']),
        user_id=str(raw.get('userId') or raw.get('user_id') or ''),
        user_name=raw.get('userName') or user.get('name') or UNKNOWN_USER,
        user_email=raw.get('userEmail') or user.get('email') or UNKNOWN_USER,
        amount=round2(to_decimal(raw.get('amount'))),
        payment_method=raw.get('paymentMethod') or raw.get('payment_method') or '',
        transaction_id=raw.get('transactionId') or raw.get('transaction_id') or '',
        payment_screenshot=raw.get('paymentScreenshot') or raw.get('payment_screenshot_url'),
        status=raw.get('status') or REQUEST_PENDING,
        created_at=raw.get('createdAt') or raw.get('created_at'),
        processed_at=raw.get('processedAt') or raw.get('processed_at'),
    )
