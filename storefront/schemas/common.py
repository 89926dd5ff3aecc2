from typing import Literal

from pydantic import BaseModel, ConfigDict


PlanType = Literal['1_day', '7_days', '30_days', 'lifetime']
PaymentMethod = Literal['upi', 'crypto', 'bank_transfer', 'paypal', 'wallet']
ManualPaymentMethod = Literal['upi', 'crypto', 'bank_transfer', 'paypal']
Role = Literal['user', 'admin']

PLANS: tuple[PlanType, ...] = ('1_day', '7_days', '30_days', 'lifetime')
DEFAULT_PLAN: PlanType = '30_days'
MANUAL_PAYMENT_METHODS: tuple[ManualPaymentMethod, ...] = ('upi', 'crypto', 'bank_transfer', 'paypal')
WALLET_PAYMENT_METHOD = 'wallet'

PLAN_LABELS = {
    '1_day': '1 Day',
    '7_days': '7 Days',
    '30_days': '30 Days',
    'lifetime': 'Lifetime',
}

PLACEHOLDER_IMAGE = '/placeholder.svg'


def format_plan(plan: str) -> str:
    return PLAN_LABELS.get(plan, plan)


def is_plan(value: object) -> bool:
    return value in PLANS


class Upload(BaseModel):
    """File picked by the user for a multipart request (screenshot, product image)."""

    model_config = ConfigDict(frozen=True)

    filename: str
    content: bytes
    content_type: str = 'application/octet-stream'

    def as_file(self) -> tuple[str, bytes, str]:
        return self.filename, self.content, self.content_type
