from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

from storefront.errors import ValidationError
from storefront.schemas.common import PlanType, is_plan
from storefront.schemas.product import Product
from storefront.state import Store


@dataclass(frozen=True)
class CartState:
    product: Product | None = None
    plan: PlanType | None = None


class Cart:
    """Single in-flight purchase intent, held in memory only."""

    def __init__(self) -> None:
        self.store: Store[CartState] = Store(CartState(), name='cart')

    @property
    def product(self) -> Product | None:
        return self.store.state.product

    @property
    def plan(self) -> PlanType | None:
        return self.store.state.plan

    @property
    def is_ready(self) -> bool:
        return self.product is not None and self.plan is not None

    @property
    def price(self) -> Decimal | None:
        if not self.is_ready:
            return None
        return self.product.price_for(self.plan)

    def subscribe(self, listener: Callable[[CartState, CartState], None]) -> Callable[[], None]:
        return self.store.subscribe(listener)

    def set_cart(self, product: Product, plan: PlanType) -> None:
        if not is_plan(plan):
            raise ValidationError('Select a duration (plan) first.')
        self.store.replace(CartState(product=product, plan=plan))

    def clear(self) -> None:
        self.store.replace(CartState())

    def selection(self) -> tuple[Product, PlanType]:
        state = self.store.state
        if state.product is None or state.plan is None:
            raise ValidationError('Select a product and plan first.')
        return state.product, state.plan
