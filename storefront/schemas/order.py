from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict

from storefront.schemas.common import WALLET_PAYMENT_METHOD, ManualPaymentMethod, PlanType, Upload
from storefront.utils.money import round2, to_decimal


ORDER_PENDING = 'pending'
ORDER_COMPLETED = 'completed'
ORDER_REJECTED = 'rejected'

ORDER_TERMINAL_STATUSES = frozenset({ORDER_COMPLETED, ORDER_REJECTED})


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str = ''
    product_id: str = ''
    plan: str
    price: Decimal
    status: str = ORDER_PENDING
    payment_method: str = ''
    transaction_id: str = ''
    payment_screenshot: str | None = None
    license_key: str | None = None
    software_download_link: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ORDER_TERMINAL_STATUSES

    @property
    def is_wallet_paid(self) -> bool:
        return self.payment_method == WALLET_PAYMENT_METHOD


class ManualOrderRequest(BaseModel):
    product_id: str
    plan: PlanType
    price: Decimal
    payment_method: ManualPaymentMethod
    transaction_id: str
    payment_screenshot: Upload

    def to_form(self) -> dict[str, str]:
        return {
            'productId': self.product_id,
            'plan': self.plan,
            'price': str(round2(self.price)),
            'paymentMethod': self.payment_method,
            'transactionId': self.transaction_id,
        }


class WalletOrderRequest(BaseModel):
    product_id: str
    plan: PlanType
    price: Decimal

    def to_wire(self) -> dict[str, str]:
        return {'productId': self.product_id, 'plan': self.plan, 'price': str(round2(self.price))}


def _nested(raw: dict[str, Any], relation: str, field: str) -> Any:
    value = raw.get(relation)
    # Relations come back as an object, a one-element list, or not at all.
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, dict):
        return value.get(field)
    return None


def resolve_license_key(raw: dict[str, Any]) -> str | None:
    key = _nested(raw, 'licenses', 'key') or raw.get('licenseKey') or raw.get('license_key')
    return key or None


def map_order(raw: dict[str, Any]) -> Order:
    return Order(
        id=str(raw['id']),
        user_id=str(raw.get('user_id') or raw.get('userId') or ''),
        product_id=str(raw.get('product_id') or raw.get('productId') or ''),
        plan=raw.get('plan') or '',
        price=round2(to_decimal(raw.get('price'))),
        status=raw.get('status') or ORDER_PENDING,
        payment_method=raw.get('payment_method') or raw.get('paymentMethod') or '',
        transaction_id=raw.get('transaction_id') or raw.get('transactionId') or '',
        payment_screenshot=raw.get('payment_screenshot_url') or raw.get('paymentScreenshot'),
        license_key=resolve_license_key(raw),
        software_download_link=_nested(raw, 'products', 'download_link'),
        created_at=raw.get('created_at') or raw.get('createdAt'),
        completed_at=raw.get('updated_at') or raw.get('completedAt'),
    )
