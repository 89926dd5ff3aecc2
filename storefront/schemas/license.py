from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from storefront.schemas.common import PlanType, is_plan


LICENSE_UNUSED = 'unused'
LICENSE_ASSIGNED = 'assigned'
LICENSE_EXPIRED = 'expired'
LICENSE_REVOKED = 'revoked'

LICENSE_STATUSES = (LICENSE_UNUSED, LICENSE_ASSIGNED, LICENSE_EXPIRED, LICENSE_REVOKED)


class License(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    key: str
    product_id: str
    status: str = LICENSE_UNUSED
    plan: PlanType | None = None
    user_id: str | None = None
    order_id: str | None = None
    created_at: datetime | None = None
    assigned_at: datetime | None = None

    @property
    def is_deletable(self) -> bool:
        return self.status == LICENSE_UNUSED


def map_license(raw: dict[str, Any]) -> License:
    plan = raw.get('plan')
    user_id = raw.get('user_id') or raw.get('userId')
    order_id = raw.get('order_id') or raw.get('orderId')
    return License(
        id=str(raw['id']),
        key=raw.get('key') or raw.get('license_key') or '',
        product_id=str(raw.get('product_id') or raw.get('productId') or ''),
        # Unknown statuses are kept as-is so they never look deletable.
        status=str(raw.get('status') or 'unknown'),
        plan=plan if is_plan(plan) else None,
        user_id=str(user_id) if user_id else None,
        order_id=str(order_id) if order_id else None,
        created_at=raw.get('created_at') or raw.get('createdAt'),
        assigned_at=raw.get('assigned_at') or raw.get('assignedAt'),
    )
