import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from storefront.errors import (
    IllegalTransitionError,
    PermissionDeniedError,
    StaleReferenceError,
    TransientNetworkError,
    ValidationError,
)
from storefront.external.backend_api import SCOPE_ALL, BackendAPI
from storefront.navigation import Router
from storefront.schemas.principal import Principal
from storefront.schemas.session import SessionSnapshot
from storefront.services.balance_request_service import BalanceRequestCache
from storefront.services.dashboard_service import get_user_overview
from storefront.services.license_service import LicenseCache
from storefront.services.moderation_service import ModerationService
from storefront.services.order_service import OrderCache
from storefront.services.session_service import SessionManager
from storefront.state import Liveness
from storefront.storage import MemorySessionStorage


ORDER_ROWS = [
    {'id': 'o1', 'user_id': 'u2', 'product_id': 'p1', 'plan': '30_days', 'price': '19.99', 'status': 'pending'},
    {'id': 'o2', 'user_id': 'u2', 'product_id': 'p1', 'plan': '7_days', 'price': '4.99', 'status': 'completed'},
    {'id': 'o3', 'user_id': 'u3', 'product_id': 'p1', 'plan': '1_day', 'price': '0.99', 'status': 'rejected'},
]

BALANCE_ROWS = [
    {'id': 'b1', 'userId': 'u2', 'amount': '25', 'status': 'pending', 'users': {'name': 'Ann', 'email': 'a@x.io'}},
    {'id': 'b2', 'userId': 'u3', 'amount': '10', 'status': 'approved'},
]


async def _make_moderation(*, role='admin'):
    api = AsyncMock(spec=BackendAPI)
    api.list_orders.return_value = ORDER_ROWS
    api.list_balance_requests.return_value = BALANCE_ROWS
    storage = MemorySessionStorage()
    storage.save(SessionSnapshot(principal=Principal(id='admin-1', role=role), token='admin-token'))
    session = SessionManager(api, AsyncMock(), storage, Router('/admin'))

    orders = OrderCache(api)
    balance_requests = BalanceRequestCache(api)
    await orders.fetch_all(SCOPE_ALL)
    await balance_requests.fetch_all(SCOPE_ALL)
    service = ModerationService(session, orders, balance_requests, LicenseCache(api))
    return service, api


async def test_approve_pending_order_flips_status_before_key_arrives():
    service, api = await _make_moderation()

    order = await service.approve_order('o1')

    api.update_order_status.assert_awaited_once_with('o1', 'completed')
    assert order.status == 'completed'
    assert order.license_key is None
    assert service.orders.get('o1').status == 'completed'
    assert not service.processing_ids

    overview = get_user_overview(Principal(id='u2'), service.orders.items, [])
    assert overview['completed_orders'][0]['license_key'] == ''


async def test_reject_pending_order():
    service, api = await _make_moderation()

    order = await service.reject_order('o1')

    api.update_order_status.assert_awaited_once_with('o1', 'rejected')
    assert order.status == 'rejected'


@pytest.mark.parametrize(
    ('order_id', 'action'),
    [
        ('o2', 'approve_order'),
        ('o2', 'reject_order'),
        ('o3', 'approve_order'),
        ('o3', 'reject_order'),
    ],
)
async def test_terminal_orders_are_never_sent_again(order_id, action):
    service, api = await _make_moderation()

    with pytest.raises(IllegalTransitionError):
        await getattr(service, action)(order_id)

    api.update_order_status.assert_not_awaited()


async def test_unknown_order_is_stale():
    service, api = await _make_moderation()

    with pytest.raises(StaleReferenceError):
        await service.approve_order('o-missing')

    api.update_order_status.assert_not_awaited()


async def test_regular_user_cannot_moderate():
    service, api = await _make_moderation(role='user')

    with pytest.raises(PermissionDeniedError):
        await service.approve_order('o1')

    api.update_order_status.assert_not_awaited()


async def test_failed_moderation_keeps_pending_status():
    service, api = await _make_moderation()
    api.update_order_status.side_effect = TransientNetworkError()

    with pytest.raises(TransientNetworkError):
        await service.approve_order('o1')

    assert service.orders.get('o1').status == 'pending'
    assert not service.processing_ids


async def test_same_item_cannot_be_processed_twice_at_once():
    service, api = await _make_moderation()
    release = asyncio.Event()

    async def update_order_status(order_id, status):
        await release.wait()
        return {'message': 'ok'}

    api.update_order_status = update_order_status

    first = asyncio.create_task(service.approve_order('o1'))
    await asyncio.sleep(0)

    assert service.is_processing('o1')
    with pytest.raises(ValidationError):
        await service.reject_order('o1')

    release.set()
    order = await first

    assert order.status == 'completed'


async def test_other_items_can_be_moderated_while_one_is_in_flight():
    service, api = await _make_moderation()
    release = asyncio.Event()

    async def update_order_status(order_id, status):
        await release.wait()
        return {'message': 'ok'}

    api.update_order_status = update_order_status

    first = asyncio.create_task(service.approve_order('o1'))
    await asyncio.sleep(0)

    request = await service.approve_balance_request('b1')

    assert request.status == 'approved'
    assert service.is_processing('o1')
    assert not service.is_processing('b1')
    with pytest.raises(ValidationError):
        await service.approve_order('o1')

    release.set()
    await first

    assert not service.processing_ids


async def test_moderation_finishing_after_dispose_skips_local_patch():
    service, api = await _make_moderation()
    liveness = Liveness()
    service.liveness = liveness
    service.orders.liveness = liveness

    async def update_order_status(order_id, status):
        liveness.dispose()
        return {'message': 'ok'}

    api.update_order_status = update_order_status

    assert await service.approve_order('o1') is None
    assert service.orders.get('o1').status == 'pending'
    assert not service.processing_ids


async def test_approve_balance_request_uses_approve_endpoint():
    service, api = await _make_moderation()

    request = await service.approve_balance_request('b1')

    api.approve_balance_request.assert_awaited_once_with('b1')
    api.reject_balance_request.assert_not_awaited()
    assert request.status == 'approved'
    assert request.amount == Decimal('25.00')
    assert request.processed_at is not None


async def test_reject_balance_request_uses_reject_endpoint():
    service, api = await _make_moderation()

    request = await service.reject_balance_request('b1')

    api.reject_balance_request.assert_awaited_once_with('b1')
    assert request.status == 'rejected'


async def test_processed_balance_request_is_refused():
    service, api = await _make_moderation()

    with pytest.raises(IllegalTransitionError):
        await service.reject_balance_request('b2')

    api.reject_balance_request.assert_not_awaited()


async def test_purge_unused_licenses_returns_backend_message():
    service, api = await _make_moderation()
    api.delete_unused_licenses.return_value = {'message': 'Deleted 4 unused licenses'}
    api.list_licenses.return_value = []

    message = await service.purge_unused_licenses()

    assert message == 'Deleted 4 unused licenses'
    api.delete_unused_licenses.assert_awaited_once_with(None)
    api.list_licenses.assert_awaited_once()
