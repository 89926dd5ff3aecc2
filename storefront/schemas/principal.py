from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from storefront.schemas.common import Role
from storefront.utils.money import round2, to_decimal


class Principal(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str = ''
    name: str = ''
    role: Role = 'user'
    balance: Decimal = Field(default=Decimal('0.00'), ge=0)
    created_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == 'admin'


def map_principal(raw: dict[str, Any]) -> Principal:
    role = raw.get('role')
    balance = round2(to_decimal(raw.get('balance')))
    return Principal(
        id=str(raw['id']),
        email=raw.get('email') or '',
        name=raw.get('name') or raw.get('full_name') or '',
        role=role if role in ('user', 'admin') else 'user',
        balance=max(balance, Decimal('0.00')),
        created_at=raw.get('createdAt') or raw.get('created_at'),
    )
