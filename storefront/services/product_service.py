from __future__ import annotations

from decimal import Decimal
from typing import Any

from storefront.errors import ValidationError
from storefront.schemas.common import PlanType, Upload, is_plan
from storefront.schemas.product import Product, ProductPayload, map_product
from storefront.services.entity_cache import EntityCache


PRODUCT_PLACEHOLDER_NAME = 'Unknown Product'


def _validate_payload(payload: ProductPayload) -> None:
    if not payload.name.strip():
        raise ValidationError('Product name is required.')
    for plan, price in payload.prices.items():
        if price < 0:
            raise ValidationError(f'Price for {plan} cannot be negative.')


class ProductCache(EntityCache[Product]):
    entity_name = 'product'

    async def fetch_all(self) -> list[Product]:
        return await self._reconcile(self.api.list_products, map_product)

    async def create(self, payload: ProductPayload, image: Upload | None = None) -> Any:
        _validate_payload(payload)
        return await self._call(lambda: self.api.create_product(payload, image))

    async def update(self, product_id: str, payload: ProductPayload, image: Upload | None = None) -> Any:
        _validate_payload(payload)
        return await self._call(lambda: self.api.update_product(product_id, payload, image))

    async def delete(self, product_id: str) -> Any:
        return await self._call(lambda: self.api.delete_product(product_id))

    def search(self, query: str) -> list[Product]:
        needle = (query or '').strip().lower()
        if not needle:
            return self.items
        return [p for p in self.items if needle in p.name.lower() or needle in p.description.lower()]

    def price_for(self, product_id: str, plan: PlanType) -> Decimal:
        if not is_plan(plan):
            raise ValidationError('Select a duration (plan) first.')
        return self.resolve(product_id).price_for(plan)

    def name_or_placeholder(self, product_id: str) -> str:
        product = self.get(product_id)
        return product.name if product else PRODUCT_PLACEHOLDER_NAME
