from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


ZERO = Decimal('0.00')
CENT = Decimal('0.01')


def to_decimal(value: object, default: Decimal = ZERO) -> Decimal:
    if value is None or value == '':
        return default
    if isinstance(value, Decimal):
        return value
    try:
        # str() keeps floats like 19.99 from turning into 19.989999...
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default


def round2(value: Decimal | int | float | str) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_positive_amount(raw: object) -> Decimal | None:
    amount = to_decimal(raw, default=ZERO)
    if not amount.is_finite() or amount <= 0:
        return None
    return round2(amount)


def format_money(value: Decimal | int | float | str | None) -> str:
    return f'${round2(value if value is not None else ZERO)}'
