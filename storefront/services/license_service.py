from __future__ import annotations

import secrets
import string
from collections.abc import Iterable
from typing import Any

import structlog

from storefront.errors import LicenseDeleteRefusedError, ValidationError
from storefront.schemas.common import is_plan
from storefront.schemas.license import LICENSE_UNUSED, License, map_license
from storefront.services.entity_cache import EntityCache


logger = structlog.get_logger(__name__)

KEY_PREFIX = 'KEY-'
KEY_ALPHABET = string.ascii_uppercase + string.digits
KEY_LENGTH = 9


def generate_license_key() -> str:
    return KEY_PREFIX + ''.join(secrets.choice(KEY_ALPHABET) for _ in range(KEY_LENGTH))


def normalize_keys(raw: str | Iterable[str]) -> list[str]:
    lines = raw.splitlines() if isinstance(raw, str) else raw
    return [key.strip() for key in lines if key and key.strip()]


class LicenseCache(EntityCache[License]):
    entity_name = 'license'

    async def fetch_all(self) -> list[License]:
        return await self._reconcile(self.api.list_licenses, map_license)

    async def create(self, product_id: str, keys: str | Iterable[str], plan: str) -> list[str]:
        if not product_id:
            raise ValidationError('Select a product first.')
        if not is_plan(plan):
            raise ValidationError('Select a duration (plan) first.')
        normalized = normalize_keys(keys)
        if not normalized:
            raise ValidationError('Enter at least one key.')

        await self._call(lambda: self.api.create_licenses(product_id, normalized, plan))
        await self.fetch_all()
        logger.info('Licenses added', product_id=product_id, plan=plan, count=len(normalized))
        return normalized

    async def generate(self, product_id: str, plan: str) -> str:
        key = generate_license_key()
        await self.create(product_id, [key], plan)
        return key

    async def delete(self, license_id: str) -> Any:
        # Only keys the cache knows to be unused are sent; anything else is refused locally.
        if not self.resolve(license_id).is_deletable:
            raise LicenseDeleteRefusedError()
        return await self._call(lambda: self.api.delete_license(license_id))

    async def delete_unused(self, product_id: str | None = None) -> str | None:
        """Bulk-deletes unused keys server side, then re-fetches.

        The local list is never filtered: only the backend knows which rows existed.
        """
        body = await self._call(lambda: self.api.delete_unused_licenses(product_id))
        await self.fetch_all()
        message = body.get('message') if isinstance(body, dict) else None
        logger.info('Unused licenses purged', product_id=product_id)
        return message

    def unused_count(self, product_id: str | None = None) -> int:
        return sum(
            1
            for lic in self.items
            if lic.status == LICENSE_UNUSED and (product_id is None or lic.product_id == product_id)
        )

