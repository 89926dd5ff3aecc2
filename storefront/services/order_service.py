from __future__ import annotations

from typing import Any

from storefront.external.backend_api import SCOPE_MINE
from storefront.schemas.order import ManualOrderRequest, Order, WalletOrderRequest, map_order
from storefront.services.entity_cache import EntityCache


def _order_or_none(body: Any) -> Order | None:
    if isinstance(body, dict) and body.get('id'):
        return map_order(body)
    return None


class OrderCache(EntityCache[Order]):
    entity_name = 'order'

    async def fetch_all(self, scope: str = SCOPE_MINE) -> list[Order]:
        return await self._reconcile(lambda: self.api.list_orders(scope), map_order)

    async def create_manual(self, request: ManualOrderRequest) -> Order | None:
        return _order_or_none(await self._call(lambda: self.api.create_order(request)))

    async def create_wallet(self, request: WalletOrderRequest) -> Order | None:
        return _order_or_none(await self._call(lambda: self.api.create_wallet_order(request)))

    async def update_status(self, order_id: str, status: str) -> Any:
        return await self._call(lambda: self.api.update_order_status(order_id, status))

    def apply_status(self, order_id: str, status: str) -> Order | None:
        # The license key is left as cached; it shows up on the next fetch_all.
        return self._patch(order_id, status=status)
