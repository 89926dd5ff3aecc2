from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

import structlog

from storefront.errors import AuthExpiredError, PermissionDeniedError, StorefrontError
from storefront.external.backend_api import BackendAPI
from storefront.external.identity_provider import SIGNED_IN, SIGNED_OUT, IdentityProvider, ProviderSession
from storefront.logging_config import mask_secret
from storefront.navigation import AUTHENTICATED_LANDING, LOGIN, Navigator, is_admin_path, should_redirect_after_sync
from storefront.schemas.principal import Principal, map_principal
from storefront.schemas.session import SessionSnapshot
from storefront.state import Liveness, Store
from storefront.storage import SessionStorage


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SessionState:
    principal: Principal | None = None
    token: str | None = None
    is_authenticated: bool = False
    # Role gates navigation, so protected content waits until this is False.
    is_syncing: bool = False


class SessionManager:
    def __init__(
        self,
        api: BackendAPI,
        identity_provider: IdentityProvider,
        storage: SessionStorage,
        navigator: Navigator,
        liveness: Liveness | None = None,
    ) -> None:
        self.api = api
        self.identity_provider = identity_provider
        self.storage = storage
        self.navigator = navigator
        self.store: Store[SessionState] = Store(SessionState(), name='session')
        self._liveness = liveness or Liveness()
        self._sync_depth = 0
        self._unsubscribe_provider: Callable[[], None] | None = None
        self._rehydrate()

    def _rehydrate(self) -> None:
        snapshot = self.storage.load()
        if snapshot is not None and snapshot.token:
            self.store.set(principal=snapshot.principal, token=snapshot.token, is_authenticated=True)

    @property
    def state(self) -> SessionState:
        return self.store.state

    @property
    def principal(self) -> Principal | None:
        return self.store.state.principal

    @property
    def token(self) -> str | None:
        return self.store.state.token

    @property
    def is_authenticated(self) -> bool:
        return self.store.state.is_authenticated

    @property
    def is_syncing(self) -> bool:
        return self.store.state.is_syncing

    @property
    def is_admin(self) -> bool:
        principal = self.principal
        return bool(self.is_authenticated and principal and principal.is_admin)

    def current_token(self) -> str | None:
        return self.store.state.token

    def _stored_token(self) -> str | None:
        snapshot = self.storage.load()
        return snapshot.token if snapshot else None

    def token_sources(self) -> list[Callable[[], str | None]]:
        """Places a session token can be recovered from, most authoritative first."""
        return [self.current_token, self._stored_token]

    def require_principal(self) -> Principal:
        principal = self.principal
        if not self.is_authenticated or principal is None:
            raise AuthExpiredError('Please log in to continue.')
        return principal

    def require_admin(self) -> Principal:
        principal = self.require_principal()
        if not principal.is_admin:
            raise PermissionDeniedError()
        return principal

    def subscribe(self, listener: Callable[[SessionState, SessionState], None]) -> Callable[[], None]:
        return self.store.subscribe(listener)

    @asynccontextmanager
    async def _syncing(self) -> AsyncIterator[None]:
        # Depth counter: overlapping syncs keep the flag raised until the last one ends.
        self._sync_depth += 1
        self._publish_syncing()
        try:
            yield
        finally:
            self._sync_depth -= 1
            self._publish_syncing()

    def _publish_syncing(self) -> None:
        if self._liveness.alive:
            self.store.set(is_syncing=self._sync_depth > 0)

    def _set_session(self, principal: Principal, token: str) -> None:
        self.store.set(principal=principal, token=token, is_authenticated=True)
        self.storage.save(SessionSnapshot(principal=principal, token=token))

    def clear(self) -> None:
        self.store.set(principal=None, token=None, is_authenticated=False)
        self.storage.clear()

    async def bootstrap(self) -> Principal | None:
        if self._unsubscribe_provider is None:
            self._unsubscribe_provider = self.identity_provider.on_auth_state_change(self.on_provider_event)

        async with self._syncing():
            provider_session = await self.identity_provider.get_session()
            if provider_session is None:
                return None
            return await self.sync_identity(provider_session.access_token)

    async def sync_identity(self, provider_token: str) -> Principal | None:
        logger.info('Syncing identity with backend', token=mask_secret(provider_token))
        try:
            async with self._syncing():
                raw = await self.api.get_me(token=provider_token)
        except AuthExpiredError:
            logger.warning('Backend rejected identity provider token')
            await self._sign_out_provider()
            self.clear()
            raise
        except StorefrontError as exc:
            logger.warning('Identity sync failed', exc=exc)
            raise

        if not self._liveness.alive:
            return None

        principal = map_principal(raw)
        self._set_session(principal, provider_token)
        logger.info('Identity synced', user_id=principal.id, role=principal.role)

        current_path = self.navigator.current_path
        if should_redirect_after_sync(current_path):
            self.navigator.navigate(AUTHENTICATED_LANDING)
        elif is_admin_path(current_path) and not principal.is_admin:
            logger.warning('Non-admin principal on admin route', user_id=principal.id, path=current_path)
            self.navigator.navigate(AUTHENTICATED_LANDING)
        return principal

    async def on_provider_event(self, event: str, provider_session: ProviderSession | None) -> None:
        if event == SIGNED_IN and provider_session is not None:
            await self.sync_identity(provider_session.access_token)
        elif event == SIGNED_OUT:
            self.clear()

    async def _sign_out_provider(self) -> None:
        try:
            await self.identity_provider.sign_out()
        except Exception as exc:
            logger.warning('Identity provider sign-out failed', exc=exc)

    async def logout(self) -> None:
        try:
            await self._sign_out_provider()
        finally:
            self.clear()

    async def handle_auth_expired(self) -> None:
        principal = self.principal
        logger.warning('Session invalidated by backend', user_id=principal.id if principal else None)
        self.clear()
        if self.navigator.current_path != LOGIN:
            self.navigator.navigate(LOGIN)

    async def refresh_principal(self) -> Principal:
        self.require_principal()
        raw = await self.api.get_me()
        principal = map_principal(raw)
        token = self.token
        if self._liveness.alive and self.is_authenticated and token:
            self._set_session(principal, token)
        return principal

    def apply_snapshot(self, snapshot: SessionSnapshot) -> None:
        token = snapshot.token or self.token
        if token:
            self._set_session(snapshot.principal, token)
        else:
            self.store.set(principal=snapshot.principal)

    def dispose(self) -> None:
        self._liveness.dispose()
        if self._unsubscribe_provider is not None:
            self._unsubscribe_provider()
            self._unsubscribe_provider = None
