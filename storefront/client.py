from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from storefront.config import Settings, settings
from storefront.external.backend_api import SCOPE_ALL, SCOPE_MINE, BackendAPI
from storefront.external.identity_provider import IdentityProvider, SupabaseIdentityProvider
from storefront.logging_config import configure_logging
from storefront.navigation import Navigator, Router
from storefront.services.balance_request_service import BalanceRequestCache
from storefront.services.cart_service import Cart
from storefront.services.checkout_service import CheckoutService
from storefront.services.dashboard_service import get_admin_overview, get_balance_request_stats, get_user_overview
from storefront.services.license_service import LicenseCache
from storefront.services.moderation_service import ModerationService
from storefront.services.order_service import OrderCache
from storefront.services.product_service import ProductCache
from storefront.services.session_service import SessionManager
from storefront.state import Liveness
from storefront.storage import SessionStorage, build_session_storage


logger = structlog.get_logger(__name__)


class StorefrontClient:
    """Builds every state container once and wires them together.

    The transport reads its bearer token from the session manager and reports
    any 401 back to it, so session invalidation is handled in one place.
    """

    def __init__(
        self,
        *,
        config: Settings = settings,
        navigator: Navigator | None = None,
        storage: SessionStorage | None = None,
        identity_provider: IdentityProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.navigator = navigator or Router()
        # One flag for every container: after aclose no late response writes state.
        self.liveness = Liveness()
        self.api = BackendAPI(config.api_base_url, timeout=config.REQUEST_TIMEOUT, transport=transport)
        self.identity_provider = identity_provider or SupabaseIdentityProvider(
            config.IDENTITY_PROVIDER_URL,
            config.IDENTITY_PROVIDER_ANON_KEY,
        )
        self.session = SessionManager(
            self.api,
            self.identity_provider,
            storage or build_session_storage(config),
            self.navigator,
            self.liveness,
        )
        self.api.set_token_provider(self.session.current_token)
        self.api.set_unauthorized_handler(self.session.handle_auth_expired)

        self.products = ProductCache(self.api, self.liveness)
        self.licenses = LicenseCache(self.api, self.liveness)
        self.orders = OrderCache(self.api, self.liveness)
        self.balance_requests = BalanceRequestCache(self.api, self.liveness)
        self.cart = Cart()
        self.checkout = CheckoutService(self.session, self.cart, self.orders, self.navigator, self.liveness)
        self.moderation = ModerationService(
            self.session,
            self.orders,
            self.balance_requests,
            self.licenses,
            self.liveness,
        )

    async def start(self) -> None:
        await self.session.bootstrap()

    async def aclose(self) -> None:
        self.session.dispose()
        await self.api.aclose()
        close = getattr(self.identity_provider, 'aclose', None)
        if close is not None:
            await close()

    async def __aenter__(self) -> StorefrontClient:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def load_user_dashboard(self) -> dict[str, Any]:
        self.session.require_principal()
        orders, products, principal = await asyncio.gather(
            self.orders.fetch_all(SCOPE_MINE),
            self.products.fetch_all(),
            self.session.refresh_principal(),
        )
        return get_user_overview(principal, orders, products)

    async def load_admin_console(self) -> dict[str, Any]:
        self.session.require_admin()
        orders, licenses, products, requests = await asyncio.gather(
            self.orders.fetch_all(SCOPE_ALL),
            self.licenses.fetch_all(),
            self.products.fetch_all(),
            self.balance_requests.fetch_all(SCOPE_ALL),
        )
        overview = get_admin_overview(orders, licenses, products)
        overview['balance_requests'] = get_balance_request_stats(requests)
        return overview


async def create_client(config: Settings = settings, **kwargs) -> StorefrontClient:
    configure_logging(config.LOG_LEVEL, config.LOG_JSON)
    client = StorefrontClient(config=config, **kwargs)
    await client.start()
    logger.info('Storefront client started', environment=config.ENVIRONMENT, storage=client.session.storage.name)
    return client
