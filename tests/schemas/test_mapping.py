from decimal import Decimal

import pytest

from storefront.schemas.balance_request import UNKNOWN_USER, map_balance_request
from storefront.schemas.common import PLACEHOLDER_IMAGE, Upload, format_plan
from storefront.schemas.license import map_license
from storefront.schemas.order import ManualOrderRequest, map_order, resolve_license_key
from storefront.schemas.principal import map_principal
from storefront.schemas.product import ProductPayload, map_product
from storefront.utils.money import format_money, parse_positive_amount, round2


def test_principal_mapping_normalizes_backend_shapes():
    principal = map_principal(
        {'id': 42, 'email': 'a@b.io', 'full_name': 'Ada', 'role': 'superuser', 'balance': '-3.2', 'created_at': None}
    )

    assert principal.id == '42'
    assert principal.name == 'Ada'
    assert principal.role == 'user'
    assert principal.balance == Decimal('0.00')
    assert not principal.is_admin


def test_principal_balance_float_is_rounded_to_cents():
    principal = map_principal({'id': 'u1', 'role': 'admin', 'balance': 19.999})

    assert principal.balance == Decimal('20.00')
    assert principal.is_admin


def test_product_mapping_fills_placeholders_and_prices():
    product = map_product(
        {
            'id': 'p1',
            'name': 'Editor Pro',
            'price_1_day': 0.99,
            'price_30_days': '19.99',
            'images': [None, ''],
            'download_link': 'https://dl.example.com',
        }
    )

    assert product.image == PLACEHOLDER_IMAGE
    assert product.images == [PLACEHOLDER_IMAGE]
    assert product.prices['1_day'] == Decimal('0.99')
    assert product.price_for('30_days') == Decimal('19.99')
    assert product.price_for('lifetime') == Decimal('0.00')
    assert product.software_download_link == 'https://dl.example.com'


def test_product_payload_wire_fields():
    payload = ProductPayload(
        name=' Editor Pro ',
        prices={'30_days': Decimal('19.9')},
        software_download_link='https://dl.example.com',
        apply_process='Paste the key',
    )

    wire = payload.to_wire()

    assert wire['name'] == 'Editor Pro'
    assert wire['price_30_days'] == '19.90'
    assert wire['price_lifetime'] == '0.00'
    assert wire['download_link'] == 'https://dl.example.com'
    assert wire['activation_process'] == 'Paste the key'


@pytest.mark.parametrize(
    ('raw', 'expected'),
    [
        ({'licenses': {'key': 'KEY-NESTED01'}}, 'KEY-NESTED01'),
        ({'licenses': [{'key': 'KEY-LISTED01'}]}, 'KEY-LISTED01'),
        ({'licenses': [], 'licenseKey': 'KEY-CAMEL001'}, 'KEY-CAMEL001'),
        ({'license_key': 'KEY-SNAKE001'}, 'KEY-SNAKE001'),
        ({'licenses': None, 'license_key': ''}, None),
    ],
)
def test_license_key_resolution(raw, expected):
    assert resolve_license_key(raw) == expected


def test_order_mapping():
    order = map_order(
        {
            'id': 7,
            'user_id': 'u1',
            'product_id': 'p1',
            'plan': '30_days',
            'price': 19.99,
            'status': 'completed',
            'payment_method': 'wallet',
            'products': {'name': 'Editor Pro', 'download_link': 'https://dl.example.com'},
            'updated_at': '2026-01-02T03:04:05Z',
        }
    )

    assert order.id == '7'
    assert order.price == Decimal('19.99')
    assert order.is_terminal
    assert order.is_wallet_paid
    assert order.software_download_link == 'https://dl.example.com'
    assert order.completed_at.year == 2026


def test_manual_order_form_uses_camel_case_fields():
    request = ManualOrderRequest(
        product_id='p1',
        plan='1_day',
        price=Decimal('1'),
        payment_method='paypal',
        transaction_id='TX9',
        payment_screenshot=Upload(filename='s.jpg', content=b'jpg'),
    )

    assert request.to_form() == {
        'productId': 'p1',
        'plan': '1_day',
        'price': '1.00',
        'paymentMethod': 'paypal',
        'transactionId': 'TX9',
    }


def test_license_mapping_keeps_unknown_status():
    lic = map_license({'id': 'l1', 'key': 'KEY-X', 'productId': 'p1', 'status': None, 'plan': 'weekly'})

    assert lic.status == 'unknown'
    assert not lic.is_deletable
    assert lic.plan is None
    assert lic.product_id == 'p1'


def test_balance_request_mapping_reads_nested_user():
    request = map_balance_request(
        {
            'id': 'b1',
            'user_id': 'u1',
            'amount': 12.5,
            'payment_method': 'crypto',
            'transaction_id': '0xabc',
            'payment_screenshot_url': 'https://cdn.example.com/s.png',
            'users': {'name': 'Ann', 'email': 'ann@example.com'},
        }
    )

    assert request.user_name == 'Ann'
    assert request.user_email == 'ann@example.com'
    assert request.amount == Decimal('12.50')
    assert request.status == 'pending'
    assert request.payment_screenshot == 'https://cdn.example.com/s.png'
    assert not request.is_terminal


def test_balance_request_mapping_without_user():
    request = map_balance_request({'id': 'b2', 'amount': '5', 'status': 'approved'})

    assert request.user_name == UNKNOWN_USER
    assert request.is_terminal


@pytest.mark.parametrize(
    ('raw', 'expected'),
    [
        ('10', Decimal('10.00')),
        (0.1, Decimal('0.10')),
        ('  2.345 ', Decimal('2.35')),
        ('0', None),
        ('-1', None),
        ('ten', None),
        (None, None),
    ],
)
def test_parse_positive_amount(raw, expected):
    assert parse_positive_amount(raw) == expected


def test_money_helpers():
    assert round2('19.995') == Decimal('20.00')
    assert format_money(Decimal('5')) == '$5.00'
    assert format_money(None) == '$0.00'
    assert format_plan('lifetime') == 'Lifetime'
    assert format_plan('custom') == 'custom'
