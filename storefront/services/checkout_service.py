from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal

import structlog

from storefront.errors import AuthExpiredError, StorefrontError, ValidationError
from storefront.navigation import DASHBOARD, LOGIN, SHOP, Navigator
from storefront.schemas.common import MANUAL_PAYMENT_METHODS, PlanType, Upload
from storefront.schemas.order import ManualOrderRequest, Order, WalletOrderRequest
from storefront.schemas.principal import Principal
from storefront.schemas.product import Product
from storefront.schemas.session import SessionSnapshot
from storefront.services.cart_service import Cart
from storefront.services.order_service import OrderCache
from storefront.services.session_service import SessionManager
from storefront.state import Liveness
from storefront.utils.money import ZERO, round2


logger = structlog.get_logger(__name__)

WALLET_PATH = 'wallet'
MANUAL_PATH = 'manual'

WALLET_SUCCESS_MESSAGE = 'Purchase complete. Your license is available on your dashboard.'
MANUAL_PENDING_MESSAGE = 'Your order is pending approval. Check your dashboard.'


def select_payment_path(balance: Decimal, price: Decimal) -> str:
    return WALLET_PATH if balance >= price else MANUAL_PATH


def recover_token(sources: Sequence[Callable[[], str | None]]) -> str | None:
    for source in sources:
        token = source()
        if token:
            return token
    return None


def reconcile_after_wallet_debit(
    principal: Principal,
    price: Decimal,
    recovered_token: str | None,
) -> SessionSnapshot:
    """Optimistic balance after a wallet purchase; the next refresh_principal overrides it."""
    new_balance = round2(principal.balance - price)
    if new_balance < ZERO:
        logger.warning('Wallet debit exceeds cached balance', user_id=principal.id)
        new_balance = round2(ZERO)
    if not recovered_token:
        logger.error('No session token recoverable after wallet debit', user_id=principal.id)
    return SessionSnapshot(
        principal=principal.model_copy(update={'balance': new_balance}),
        token=recovered_token or None,
    )


@dataclass(frozen=True)
class CheckoutQuote:
    product: Product
    plan: PlanType
    price: Decimal
    balance: Decimal
    path: str

    @property
    def shortfall(self) -> Decimal:
        return max(round2(self.price - self.balance), ZERO)


@dataclass(frozen=True)
class CheckoutResult:
    path: str
    order: Order | None
    message: str


@dataclass
class ManualPaymentForm:
    payment_method: str = 'upi'
    transaction_id: str = ''
    screenshot: Upload | None = None

    def reset(self) -> None:
        self.payment_method = 'upi'
        self.transaction_id = ''
        self.screenshot = None


class CheckoutService:
    def __init__(
        self,
        session: SessionManager,
        cart: Cart,
        orders: OrderCache,
        navigator: Navigator,
        liveness: Liveness | None = None,
    ) -> None:
        self.session = session
        self.cart = cart
        self.orders = orders
        self.navigator = navigator
        self.liveness = liveness or Liveness()
        self.form = ManualPaymentForm()
        self.is_submitting = False

    def quote(self) -> CheckoutQuote:
        # Re-evaluated on every call so a plan or balance change is always reflected.
        if not self.session.is_authenticated or self.session.principal is None:
            self.navigator.navigate(LOGIN)
            raise AuthExpiredError('Please log in to continue.')
        try:
            product, plan = self.cart.selection()
        except ValidationError:
            self.navigator.navigate(SHOP)
            raise

        price = round2(product.price_for(plan))
        balance = round2(self.session.principal.balance)
        return CheckoutQuote(
            product=product,
            plan=plan,
            price=price,
            balance=balance,
            path=select_payment_path(balance, price),
        )

    def _begin_submit(self) -> None:
        if self.is_submitting:
            raise ValidationError('Your payment is already being processed.')
        self.is_submitting = True

    async def pay_with_wallet(self) -> CheckoutResult:
        quote = self.quote()
        if quote.path != WALLET_PATH:
            raise ValidationError('Insufficient balance. Please pay manually or add funds.')

        self._begin_submit()
        try:
            order = await self.orders.create_wallet(
                WalletOrderRequest(product_id=quote.product.id, plan=quote.plan, price=quote.price)
            )
        except AuthExpiredError:
            logger.warning('Session expired during wallet purchase', product_id=quote.product.id)
            raise
        except StorefrontError as exc:
            logger.warning('Wallet purchase failed', product_id=quote.product.id, plan=quote.plan, exc=exc)
            raise
        finally:
            self.is_submitting = False

        if not self.liveness.alive:
            return CheckoutResult(path=WALLET_PATH, order=order, message=WALLET_SUCCESS_MESSAGE)

        principal = self.session.principal
        if principal is None:
            logger.warning('Session ended before wallet debit could be applied', product_id=quote.product.id)
        elif round2(principal.balance) != quote.balance:
            # A refresh landed mid-purchase; its balance already reflects the backend debit.
            logger.info('Balance refreshed during wallet purchase', user_id=principal.id, balance=principal.balance)
        else:
            snapshot = reconcile_after_wallet_debit(
                principal,
                quote.price,
                recover_token(self.session.token_sources()),
            )
            self.session.apply_snapshot(snapshot)

        self.cart.clear()
        self.navigator.navigate(DASHBOARD)
        logger.info('Wallet purchase completed', product_id=quote.product.id, plan=quote.plan)
        return CheckoutResult(path=WALLET_PATH, order=order, message=WALLET_SUCCESS_MESSAGE)

    def _build_manual_request(self, quote: CheckoutQuote) -> ManualOrderRequest:
        if self.form.payment_method not in MANUAL_PAYMENT_METHODS:
            raise ValidationError('Please select a payment method.')
        transaction_id = self.form.transaction_id.strip()
        if not transaction_id:
            raise ValidationError('Please enter your Transaction ID.')
        if self.form.screenshot is None:
            raise ValidationError('Please upload a payment screenshot.')

        return ManualOrderRequest(
            product_id=quote.product.id,
            plan=quote.plan,
            price=quote.price,
            payment_method=self.form.payment_method,
            transaction_id=transaction_id,
            payment_screenshot=self.form.screenshot,
        )

    async def submit_manual_order(self) -> CheckoutResult:
        quote = self.quote()
        request = self._build_manual_request(quote)

        self._begin_submit()
        try:
            order = await self.orders.create_manual(request)
        except StorefrontError as exc:
            # Form values stay in place so the user can retry without re-entering them.
            logger.warning('Manual order submission failed', product_id=quote.product.id, exc=exc)
            raise
        finally:
            self.is_submitting = False

        if not self.liveness.alive:
            return CheckoutResult(path=MANUAL_PATH, order=order, message=MANUAL_PENDING_MESSAGE)

        self.cart.clear()
        self.form.reset()
        self.navigator.navigate(DASHBOARD)
        logger.info('Manual order submitted', product_id=quote.product.id, plan=quote.plan)
        return CheckoutResult(path=MANUAL_PATH, order=order, message=MANUAL_PENDING_MESSAGE)
