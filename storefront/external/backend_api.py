from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog

from storefront.config import settings
from storefront.errors import (
    AuthExpiredError,
    BusinessRuleError,
    PermissionDeniedError,
    TransientNetworkError,
)
from storefront.schemas.balance_request import BalanceTopUpRequest
from storefront.schemas.common import Upload
from storefront.schemas.order import ManualOrderRequest, WalletOrderRequest
from storefront.schemas.product import ProductPayload


logger = structlog.get_logger(__name__)

TokenProvider = Callable[[], str | None]
UnauthorizedHandler = Callable[[], Awaitable[None]]

SCOPE_MINE = 'mine'
SCOPE_ALL = 'all'


def _json_or_none(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _unwrap(body: Any) -> Any:
    if isinstance(body, dict) and 'data' in body:
        return body['data']
    return body


def _error_message(body: Any) -> str | None:
    if isinstance(body, dict):
        for field in ('message', 'error', 'detail'):
            value = body.get(field)
            if isinstance(value, str) and value:
                return value
    if isinstance(body, str) and body:
        return body
    return None


def _error_code(body: Any) -> str | None:
    if isinstance(body, dict):
        value = body.get('error_code') or body.get('code')
        return str(value) if value else None
    return None


def _multipart(fields: dict[str, str], uploads: dict[str, Upload | None]) -> list[tuple[str, Any]]:
    # (None, value) entries are plain form fields; keeps the body multipart even without a file.
    parts: list[tuple[str, Any]] = [(name, (None, value)) for name, value in fields.items()]
    parts.extend((name, upload.as_file()) for name, upload in uploads.items() if upload is not None)
    return parts


class BackendAPI:
    """HTTP transport for the storefront backend.

    Attaches the bearer credential from ``token_provider`` to every call and maps
    failures onto the storefront error taxonomy. A 401 from any endpoint runs the
    single ``on_unauthorized`` hook before ``AuthExpiredError`` is raised.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        token_provider: TokenProvider | None = None,
        on_unauthorized: UnauthorizedHandler | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.api_base_url).rstrip('/')
        self._token_provider = token_provider
        self._on_unauthorized = on_unauthorized
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.REQUEST_TIMEOUT,
            transport=transport,
        )

    def set_token_provider(self, provider: TokenProvider | None) -> None:
        self._token_provider = provider

    def set_unauthorized_handler(self, handler: UnauthorizedHandler | None) -> None:
        self._on_unauthorized = handler

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> BackendAPI:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        files: list[tuple[str, Any]] | None = None,
        params: dict[str, str] | None = None,
        token: str | None = None,
    ) -> Any:
        headers = {}
        bearer = token if token is not None else (self._token_provider() if self._token_provider else None)
        if bearer:
            headers['Authorization'] = f'Bearer {bearer}'

        try:
            response = await self._client.request(
                method,
                path,
                json=json,
                files=files,
                params=params,
                headers=headers,
            )
        except httpx.TransportError as exc:
            logger.warning('Backend request failed', method=method, path=path, exc=exc)
            raise TransientNetworkError() from exc

        body = _json_or_none(response)
        status_code = response.status_code

        if status_code == 401:
            logger.warning('Session expired or invalid token', method=method, path=path)
            if self._on_unauthorized is not None:
                await self._on_unauthorized()
            raise AuthExpiredError(status_code=status_code)

        if status_code >= 500:
            logger.warning('Backend server error', method=method, path=path, status_code=status_code)
            raise TransientNetworkError(status_code=status_code)

        if status_code >= 400:
            error_cls = PermissionDeniedError if status_code == 403 else BusinessRuleError
            raise error_cls(_error_message(body), status_code=status_code, error_code=_error_code(body))

        return body

    async def _get_data(self, path: str, **kwargs) -> Any:
        return _unwrap(await self.request('GET', path, **kwargs))

    # Identity

    async def get_me(self, *, token: str | None = None) -> dict[str, Any]:
        return await self._get_data('/users/me', token=token)

    # Products

    async def list_products(self) -> list[dict[str, Any]]:
        return await self._get_data('/products') or []

    async def create_product(self, payload: ProductPayload, image: Upload | None = None) -> Any:
        files = _multipart(payload.to_wire(), {'image': image})
        return _unwrap(await self.request('POST', '/products', files=files))

    async def update_product(self, product_id: str, payload: ProductPayload, image: Upload | None = None) -> Any:
        if image is not None:
            files = _multipart(payload.to_wire(), {'image': image})
            return _unwrap(await self.request('PUT', f'/products/{product_id}', files=files))
        return _unwrap(await self.request('PUT', f'/products/{product_id}', json=payload.to_wire()))

    async def delete_product(self, product_id: str) -> Any:
        return await self.request('DELETE', f'/products/{product_id}')

    # Licenses

    async def list_licenses(self) -> list[dict[str, Any]]:
        return await self._get_data('/licenses') or []

    async def create_licenses(self, product_id: str, keys: list[str], plan: str) -> Any:
        return _unwrap(
            await self.request('POST', '/licenses', json={'productId': product_id, 'keys': keys, 'plan': plan})
        )

    async def delete_license(self, license_id: str) -> Any:
        return await self.request('DELETE', f'/licenses/{license_id}')

    async def delete_unused_licenses(self, product_id: str | None = None) -> Any:
        params = {'productId': product_id} if product_id else None
        return await self.request('DELETE', '/licenses/unused', params=params)

    # Orders

    async def create_order(self, order: ManualOrderRequest) -> Any:
        files = _multipart(order.to_form(), {'paymentScreenshot': order.payment_screenshot})
        return _unwrap(await self.request('POST', '/orders', files=files))

    async def create_wallet_order(self, order: WalletOrderRequest) -> Any:
        return _unwrap(await self.request('POST', '/orders/wallet', json=order.to_wire()))

    async def list_orders(self, scope: str = SCOPE_MINE) -> list[dict[str, Any]]:
        path = '/orders/admin/all' if scope == SCOPE_ALL else '/orders/my-orders'
        return await self._get_data(path) or []

    async def update_order_status(self, order_id: str, status: str) -> Any:
        return await self.request('PATCH', f'/orders/{order_id}/status', json={'status': status})

    # Balance requests

    async def create_balance_request(self, request: BalanceTopUpRequest) -> Any:
        files = _multipart(request.to_form(), {'paymentScreenshot': request.payment_screenshot})
        return _unwrap(await self.request('POST', '/balance', files=files))

    async def list_balance_requests(self, scope: str = SCOPE_MINE) -> list[dict[str, Any]]:
        path = '/balance/admin/all' if scope == SCOPE_ALL else '/balance/my-requests'
        return await self._get_data(path) or []

    async def approve_balance_request(self, request_id: str) -> Any:
        return await self.request('PATCH', f'/balance/{request_id}/approve')

    async def reject_balance_request(self, request_id: str) -> Any:
        return await self.request('PATCH', f'/balance/{request_id}/reject')
