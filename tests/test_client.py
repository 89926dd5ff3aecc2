import httpx
import pytest

from storefront.client import StorefrontClient
from storefront.config import Settings
from storefront.errors import AuthExpiredError, PermissionDeniedError
from storefront.external.backend_api import SCOPE_ALL
from storefront.external.identity_provider import ProviderSession
from storefront.navigation import Router
from storefront.storage import MemorySessionStorage


class FakeIdentityProvider:
    def __init__(self, session=None):
        self.session = session
        self.callbacks = []
        self.signed_out = 0

    async def get_session(self):
        return self.session

    async def sign_out(self):
        self.signed_out += 1
        self.session = None

    def on_auth_state_change(self, callback):
        self.callbacks.append(callback)
        return lambda: self.callbacks.remove(callback)


CONFIG = Settings(ENVIRONMENT='development', LOCAL_API_URL='http://api.test/api')

ROUTES = {
    '/api/users/me': {'id': 'admin-1', 'email': 'admin@example.com', 'role': 'admin', 'balance': '0'},
    '/api/orders/admin/all': [
        {'id': 'o1', 'product_id': 'p1', 'plan': '30_days', 'price': '19.99', 'status': 'pending'},
    ],
    '/api/licenses': [
        {'id': 'l1', 'key': 'KEY-AAAAAAAAA', 'product_id': 'p1', 'status': 'unused'},
    ],
    '/api/products': [{'id': 'p1', 'name': 'Editor Pro', 'price_30_days': '19.99'}],
    '/api/balance/admin/all': [{'id': 'b1', 'userId': 'u2', 'amount': '25', 'status': 'approved'}],
}


def _make_client(handler, *, session=None, path='/login'):
    return StorefrontClient(
        config=CONFIG,
        navigator=Router(path),
        storage=MemorySessionStorage(),
        identity_provider=FakeIdentityProvider(session),
        transport=httpx.MockTransport(handler),
    )


def _route(request):
    return httpx.Response(200, json={'data': ROUTES[request.url.path]})


async def test_start_signs_in_and_loads_admin_console():
    seen_tokens = set()

    def handler(request):
        seen_tokens.add(request.headers.get('Authorization'))
        return _route(request)

    client = _make_client(handler, session=ProviderSession(access_token='provider-token'))

    async with client:
        assert client.session.is_admin
        assert client.navigator.current_path == '/dashboard'

        overview = await client.load_admin_console()

    assert overview['pending_orders'] == 1
    assert overview['unused_licenses'] == 1
    assert overview['balance_requests']['approved'] == 1
    assert seen_tokens == {'Bearer provider-token'}


async def test_admin_console_requires_admin_role():
    def handler(request):
        if request.url.path == '/api/users/me':
            return httpx.Response(200, json={'data': {'id': 'u1', 'role': 'user'}})
        return _route(request)

    client = _make_client(handler, session=ProviderSession(access_token='provider-token'))
    await client.start()

    with pytest.raises(PermissionDeniedError):
        await client.load_admin_console()

    await client.aclose()


async def test_any_unauthorized_response_ends_session():
    def handler(request):
        if request.url.path != '/api/orders/admin/all':
            return _route(request)
        return httpx.Response(401, json={'message': 'jwt expired'})

    client = _make_client(handler, session=ProviderSession(access_token='provider-token'))
    await client.start()

    with pytest.raises(AuthExpiredError):
        await client.orders.fetch_all(SCOPE_ALL)

    assert not client.session.is_authenticated
    assert client.navigator.current_path == '/login'
    await client.aclose()


async def test_dispose_during_fetch_leaves_every_container_untouched():
    client = None

    async def handler(request):
        if request.url.path == '/api/orders/admin/all':
            client.session.dispose()
        return _route(request)

    client = _make_client(handler, session=ProviderSession(access_token='provider-token'))
    await client.start()

    orders = await client.orders.fetch_all(SCOPE_ALL)

    assert [order.id for order in orders] == ['o1']
    assert client.orders.items == []
    assert not client.liveness.alive
    assert not client.checkout.liveness.alive
    assert not client.moderation.liveness.alive
    await client.aclose()
