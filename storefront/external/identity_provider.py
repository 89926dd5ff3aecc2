from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog

from storefront.config import settings
from storefront.errors import BusinessRuleError, TransientNetworkError


logger = structlog.get_logger(__name__)

SIGNED_IN = 'SIGNED_IN'
SIGNED_OUT = 'SIGNED_OUT'


def _json_object(response: httpx.Response) -> dict[str, Any]:
    # Gateways in front of the provider answer with HTML pages.
    try:
        body = response.json() if response.content else {}
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@dataclass(frozen=True)
class ProviderSession:
    access_token: str
    refresh_token: str | None = None
    email: str | None = None


AuthStateCallback = Callable[[str, ProviderSession | None], Awaitable[None]]


class IdentityProvider(Protocol):
    async def get_session(self) -> ProviderSession | None: ...

    async def sign_out(self) -> None: ...

    def on_auth_state_change(self, callback: AuthStateCallback) -> Callable[[], None]: ...


class SupabaseIdentityProvider:
    """Supabase (GoTrue) auth over its REST API, holding the provider session in memory."""

    def __init__(
        self,
        url: str | None = None,
        anon_key: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = (url or settings.IDENTITY_PROVIDER_URL).rstrip('/')
        self._anon_key = anon_key if anon_key is not None else settings.IDENTITY_PROVIDER_ANON_KEY
        self._client = httpx.AsyncClient(
            base_url=f'{self.url}/auth/v1',
            headers={'apikey': self._anon_key},
            timeout=settings.REQUEST_TIMEOUT,
            transport=transport,
        )
        self._session: ProviderSession | None = None
        self._callbacks: list[AuthStateCallback] = []

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_session(self) -> ProviderSession | None:
        return self._session

    def on_auth_state_change(self, callback: AuthStateCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    async def _emit(self, event: str, session: ProviderSession | None) -> None:
        for callback in list(self._callbacks):
            await callback(event, session)

    async def sign_in_with_password(self, email: str, password: str) -> ProviderSession:
        try:
            response = await self._client.post(
                '/token',
                params={'grant_type': 'password'},
                json={'email': email, 'password': password},
            )
        except httpx.TransportError as exc:
            raise TransientNetworkError() from exc

        if response.status_code >= 500:
            raise TransientNetworkError(status_code=response.status_code)
        if response.status_code >= 400:
            body = _json_object(response)
            message = body.get('error_description') or body.get('msg') or 'Invalid login credentials'
            raise BusinessRuleError(message, status_code=response.status_code)

        body = _json_object(response)
        if not body.get('access_token'):
            logger.warning('Identity provider returned no access token', status_code=response.status_code)
            raise TransientNetworkError(status_code=response.status_code)
        session = ProviderSession(
            access_token=body['access_token'],
            refresh_token=body.get('refresh_token'),
            email=(body.get('user') or {}).get('email', email),
        )
        await self.complete_redirect_sign_in(session)
        return session

    async def complete_redirect_sign_in(self, session: ProviderSession) -> None:
        """Adopts a session handed back by an OAuth redirect and announces it."""
        self._session = session
        logger.info('Identity provider session established', email=session.email)
        await self._emit(SIGNED_IN, session)

    async def sign_out(self) -> None:
        session = self._session
        self._session = None
        try:
            if session is not None:
                response = await self._client.post(
                    '/logout',
                    headers={'Authorization': f'Bearer {session.access_token}'},
                )
                # An already-revoked token still means we are signed out.
                if response.status_code >= 400 and response.status_code != 401:
                    raise BusinessRuleError('Provider sign-out failed', status_code=response.status_code)
        except httpx.TransportError as exc:
            raise TransientNetworkError() from exc
        finally:
            await self._emit(SIGNED_OUT, None)

