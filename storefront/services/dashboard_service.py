from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from storefront.schemas.balance_request import REQUEST_APPROVED, REQUEST_PENDING, REQUEST_REJECTED, BalanceRequest
from storefront.schemas.common import format_plan
from storefront.schemas.license import LICENSE_ASSIGNED, LICENSE_UNUSED, License
from storefront.schemas.order import ORDER_COMPLETED, ORDER_PENDING, Order
from storefront.schemas.principal import Principal
from storefront.schemas.product import Product
from storefront.services.product_service import PRODUCT_PLACEHOLDER_NAME
from storefront.utils.money import ZERO, round2


def _product_index(products: Iterable[Product]) -> dict[str, Product]:
    return {product.id: product for product in products}


def _order_row(order: Order, products: dict[str, Product]) -> dict[str, Any]:
    product = products.get(order.product_id)
    return {
        'order_id': order.id,
        'product_id': order.product_id,
        'product_name': product.name if product else PRODUCT_PLACEHOLDER_NAME,
        'plan': order.plan,
        'plan_label': format_plan(order.plan),
        'price': order.price,
        'status': order.status,
        'payment_method': order.payment_method,
        # Empty right after approval until the next fetch brings the key.
        'license_key': order.license_key or '',
        'download_link': order.software_download_link or (product.software_download_link if product else None),
        'created_at': order.created_at,
    }


def get_user_overview(
    principal: Principal,
    orders: Sequence[Order],
    products: Iterable[Product],
) -> dict[str, Any]:
    index = _product_index(products)
    completed = [_order_row(o, index) for o in orders if o.status == ORDER_COMPLETED]
    pending = [_order_row(o, index) for o in orders if o.status == ORDER_PENDING]
    return {
        'user_id': principal.id,
        'name': principal.name,
        'balance': round2(principal.balance),
        'total_orders': len(orders),
        'completed_orders': completed,
        'pending_orders': pending,
        'license_keys': [row['license_key'] for row in completed if row['license_key']],
    }


def get_admin_overview(
    orders: Sequence[Order],
    licenses: Sequence[License],
    products: Sequence[Product],
) -> dict[str, Any]:
    index = _product_index(products)
    inventory = []
    for product in products:
        product_licenses = [lic for lic in licenses if lic.product_id == product.id]
        inventory.append(
            {
                'product_id': product.id,
                'product_name': product.name,
                'total': len(product_licenses),
                'unused': sum(1 for lic in product_licenses if lic.status == LICENSE_UNUSED),
                'assigned': sum(1 for lic in product_licenses if lic.status == LICENSE_ASSIGNED),
            }
        )

    pending = [o for o in orders if o.status == ORDER_PENDING]
    return {
        'total_orders': len(orders),
        'pending_orders': len(pending),
        'unused_licenses': sum(1 for lic in licenses if lic.status == LICENSE_UNUSED),
        'total_products': len(products),
        'recent_pending': [_order_row(o, index) for o in pending[:5]],
        'inventory': inventory,
    }


def get_balance_request_stats(requests: Sequence[BalanceRequest]) -> dict[str, Any]:
    approved = [r for r in requests if r.status == REQUEST_APPROVED]
    return {
        'pending': sum(1 for r in requests if r.status == REQUEST_PENDING),
        'approved': len(approved),
        'rejected': sum(1 for r in requests if r.status == REQUEST_REJECTED),
        'total_approved': round2(sum((r.amount for r in approved), ZERO)),
    }
