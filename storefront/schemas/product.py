from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from storefront.schemas.common import PLACEHOLDER_IMAGE, PLANS, PlanType
from storefront.utils.money import ZERO, round2, to_decimal


WIRE_PRICE_FIELDS: dict[str, str] = {
    '1_day': 'price_1_day',
    '7_days': 'price_7_days',
    '30_days': 'price_30_days',
    'lifetime': 'price_lifetime',
}


class Product(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ''
    image: str = PLACEHOLDER_IMAGE
    images: list[str] = Field(default_factory=list)
    prices: dict[PlanType, Decimal] = Field(default_factory=dict)
    software_download_link: str | None = None
    tutorial_video_link: str | None = None
    apply_process: str | None = None

    def price_for(self, plan: PlanType) -> Decimal:
        return self.prices.get(plan, ZERO)


class ProductPayload(BaseModel):
    """Admin create/edit form for a product."""

    name: str
    description: str = ''
    prices: dict[PlanType, Decimal] = Field(default_factory=dict)
    software_download_link: str = ''
    tutorial_video_link: str = ''
    apply_process: str = ''

    def to_wire(self) -> dict[str, str]:
        data = {
            'name': self.name.strip(),
            'description': self.description,
            'download_link': self.software_download_link,
            'tutorial_video_link': self.tutorial_video_link,
            'activation_process': self.apply_process,
        }
        for plan in PLANS:
            data[WIRE_PRICE_FIELDS[plan]] = str(round2(self.prices.get(plan, ZERO)))
        return data


def map_product(raw: dict[str, Any]) -> Product:
    image = raw.get('image_url') or PLACEHOLDER_IMAGE
    images = [item for item in (raw.get('images') or []) if item]
    return Product(
        id=str(raw['id']),
        name=raw.get('name') or '',
        description=raw.get('description') or '',
        image=image,
        images=images or [image],
        prices={plan: round2(to_decimal(raw.get(WIRE_PRICE_FIELDS[plan]))) for plan in PLANS},
        software_download_link=raw.get('download_link'),
        tutorial_video_link=raw.get('tutorial_video_link'),
        apply_process=raw.get('activation_process'),
    )
