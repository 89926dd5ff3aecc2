from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog

from storefront.errors import IllegalTransitionError, ValidationError
from storefront.schemas.balance_request import REQUEST_APPROVED, REQUEST_REJECTED, BalanceRequest
from storefront.schemas.order import ORDER_COMPLETED, ORDER_REJECTED, Order
from storefront.services.balance_request_service import BalanceRequestCache
from storefront.services.license_service import LicenseCache
from storefront.services.order_service import OrderCache
from storefront.services.session_service import SessionManager
from storefront.state import Liveness


logger = structlog.get_logger(__name__)


class ModerationService:
    def __init__(
        self,
        session: SessionManager,
        orders: OrderCache,
        balance_requests: BalanceRequestCache,
        licenses: LicenseCache,
        liveness: Liveness | None = None,
    ) -> None:
        self.session = session
        self.orders = orders
        self.balance_requests = balance_requests
        self.licenses = licenses
        self.liveness = liveness or Liveness()
        self.processing_ids: set[str] = set()

    def is_processing(self, entity_id: str) -> bool:
        return entity_id in self.processing_ids

    @asynccontextmanager
    async def _processing(self, entity_id: str) -> AsyncIterator[None]:
        if entity_id in self.processing_ids:
            raise ValidationError('This item is already being processed.')
        self.processing_ids.add(entity_id)
        try:
            yield
        finally:
            self.processing_ids.discard(entity_id)

    async def approve_order(self, order_id: str) -> Order | None:
        return await self._moderate_order(order_id, ORDER_COMPLETED)

    async def reject_order(self, order_id: str) -> Order | None:
        return await self._moderate_order(order_id, ORDER_REJECTED)

    async def _moderate_order(self, order_id: str, target: str) -> Order | None:
        admin = self.session.require_admin()
        order = self.orders.resolve(order_id)
        if order.is_terminal:
            raise IllegalTransitionError(f'Order is already {order.status}.')

        async with self._processing(order_id):
            await self.orders.update_status(order_id, target)

        logger.info('Order moderated', order_id=order_id, status=target, admin_id=admin.id)
        if not self.liveness.alive:
            return None
        return self.orders.apply_status(order_id, target)

    async def approve_balance_request(self, request_id: str) -> BalanceRequest | None:
        return await self._moderate_balance_request(request_id, REQUEST_APPROVED)

    async def reject_balance_request(self, request_id: str) -> BalanceRequest | None:
        return await self._moderate_balance_request(request_id, REQUEST_REJECTED)

    async def _moderate_balance_request(self, request_id: str, target: str) -> BalanceRequest | None:
        admin = self.session.require_admin()
        request = self.balance_requests.resolve(request_id)
        if request.is_terminal:
            raise IllegalTransitionError(f'Request is already {request.status}.')

        async with self._processing(request_id):
            if target == REQUEST_APPROVED:
                await self.balance_requests.approve(request_id)
            else:
                await self.balance_requests.reject(request_id)

        # The credit itself is applied by the backend; the owner sees it on their next refresh.
        logger.info('Balance request moderated', request_id=request_id, status=target, admin_id=admin.id)
        if not self.liveness.alive:
            return None
        return self.balance_requests.apply_status(request_id, target)

    async def purge_unused_licenses(self, product_id: str | None = None) -> str | None:
        self.session.require_admin()
        async with self._processing(product_id or 'licenses:unused'):
            return await self.licenses.delete_unused(product_id)
