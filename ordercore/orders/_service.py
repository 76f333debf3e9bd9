"""
Order state machine — placement, status changes, cancellation, returns.

Every operation follows the same shape:

    load + validate (no writes)
         │
         ▼
    build the next Order value
         │
         ▼
    saga: [side effects ...] + order write
         │
         ├── Ok  → new Order
         └── Err → compensators run in reverse, nothing stays changed

For an existing order the first saga step is a compare-and-swap write of
the new state, so two concurrent requests can never both pass the status
check and both restock or refund.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, assert_never

from kungfu import Result, Ok, Error

from ordercore._config import Settings
from ordercore._errors import CoreError, Errors
from ordercore._logging import money_log
from ordercore._types import AddressId, Clock, LineId, OrderId, Paise, format_rupees
from ordercore import saga as S
from ordercore.coupons import CouponService
from ordercore.inventory import InventoryLedger
from ordercore.models import (
    AppliedCoupon,
    CartSnapshot,
    CodPayment,
    ItemStatus,
    Order,
    OrderLine,
    OrderStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    RazorpayPayment,
    ReturnRecord,
    ReturnStatus,
    TxStatus,
    TxType,
    UserContext,
    WalletPayment,
    WalletTransaction,
    new_id,
    with_payment_status,
)
from ordercore.orders._numbering import OrderNumbers
from ordercore.orders._transitions import allowed_next, require_transition
from ordercore.payments import GatewayConfirmation, HmacSignatureVerifier, SignatureVerifier
from ordercore.pricing import PriceBook, compute_totals, pricing_at_placement, prorate, reprice_without
from ordercore.store import Store, lift_store
from ordercore.wallet import WalletLedger

logger = logging.getLogger(__name__)

type Effect = S.SagaStep[Any, CoreError]


class ReturnAction(Enum):
    APPROVE = "approve"
    REJECT = "reject"


class OrderService:
    """
    Owns order status, item status and payment status.

    Example:
        orders = OrderService(store, Settings())

        match await orders.place_order(user, cart, address_id, PaymentMethod.WALLET):
            case Ok(order):
                print(order.order_number, order.payment.status)
            case Error(e):
                print(e.kind, e.message)
    """

    def __init__(
        self,
        store: Store,
        settings: Settings,
        *,
        clock: Clock = datetime.now,
        verifier: SignatureVerifier | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._clock = clock
        self._inventory = InventoryLedger(store)
        self._wallet = WalletLedger(store, clock)
        self._prices = PriceBook(store, clock)
        self._coupons = CouponService(store, settings, clock)
        self._numbers = OrderNumbers(store, settings)
        if verifier is None and settings.gateway_secret:
            verifier = HmacSignatureVerifier(settings.gateway_secret)
        self._verifier = verifier

    # ═══════════════════════════════════════════════════════════════════════════
    # Reads
    # ═══════════════════════════════════════════════════════════════════════════

    async def get_order(self, user: UserContext, order_id: OrderId) -> Result[Order, CoreError]:
        return await self._load_owned(user, order_id)

    async def _load(self, order_id: OrderId) -> Result[Order, CoreError]:
        match lift_store(await self._store.get_order(order_id)):
            case Ok(None):
                return Error(Errors.not_found("Order", order_id))
            case Ok(order):
                return Ok(order)
            case Error(e):
                return Error(e)

    async def _load_owned(self, user: UserContext, order_id: OrderId) -> Result[Order, CoreError]:
        match await self._load(order_id):
            case Ok(order):
                if order.user_id != user.user_id and not user.is_admin:
                    return Error(Errors.unauthorized("This order does not belong to you"))
                return Ok(order)
            case Error(e):
                return Error(e)

    # ═══════════════════════════════════════════════════════════════════════════
    # place_order()
    # ═══════════════════════════════════════════════════════════════════════════

    async def place_order(
        self,
        user: UserContext,
        cart: CartSnapshot,
        address_id: AddressId,
        method: PaymentMethod,
        *,
        gateway_order_id: str | None = None,
    ) -> Result[Order, CoreError]:
        """
        Turn a cart snapshot into an order.

        Stock is reserved line by line with conditional decrements, then the
        coupon use is counted, the order number allocated, the wallet
        charged (WALLET), and the order written last. Any failure releases
        everything taken so far.
        """
        if cart.user_id != user.user_id:
            return Error(Errors.unauthorized("Cart does not belong to you"))
        if cart.is_empty:
            return Error(Errors.validation("Your cart is empty"))

        match lift_store(await self._store.get_address(address_id)):
            case Ok(None):
                return Error(Errors.not_found("Address", address_id))
            case Ok(address):
                if address.user_id != user.user_id:
                    return Error(Errors.unauthorized("Address does not belong to you"))
            case Error(e):
                return Error(e)

        match await self._price_lines(cart):
            case Ok(lines):
                pass
            case Error(e):
                return Error(e)

        subtotal = sum(line.subtotal for line in lines)
        coupon: AppliedCoupon | None = None
        if cart.coupon_code:
            match await self._coupons.check_coupon(user.user_id, cart.coupon_code, subtotal):
                case Ok(quote):
                    coupon = AppliedCoupon(quote.coupon.code, quote.discount)
                case Error(e):
                    return Error(e)

        totals = compute_totals(subtotal, coupon.discount if coupon else 0, self._settings)

        payment: Payment
        match method:
            case PaymentMethod.COD:
                if totals.total > self._settings.cod_limit:
                    return Error(Errors.validation(
                        f"COD not available above {format_rupees(self._settings.cod_limit)}"
                    ))
                payment = CodPayment()
            case PaymentMethod.RAZORPAY:
                if not gateway_order_id:
                    return Error(Errors.validation("Gateway order id is required for online payment"))
                payment = RazorpayPayment(gateway_order_id=gateway_order_id)
            case PaymentMethod.WALLET:
                match await self._wallet.wallet_of(user.user_id):
                    case Ok(wallet):
                        if wallet.balance < totals.total:
                            return Error(Errors.insufficient_balance(wallet.balance, totals.total))
                    case Error(e):
                        return Error(e)
                payment = WalletPayment()
            case _:
                assert_never(method)

        now = self._clock()
        draft = Order(
            id=new_id(),
            user_id=user.user_id,
            order_number="",
            lines=lines,
            address_id=address_id,
            payment=payment,
            pricing=pricing_at_placement(totals),
            expected_delivery=now.date() + timedelta(days=self._settings.delivery_days),
            created_at=now,
            updated_at=now,
            coupon=coupon,
        )

        prepare = S.sequence(
            *(self._reserve(line) for line in lines),
            *((self._consume_coupon(coupon.code),) if coupon else ()),
        )
        saga = (
            prepare
            .then(lambda _: S.from_result(lambda: self._numbers.next(now.date())))
            .then(lambda number: self._charge_and_insert(replace(draft, order_number=number)))
        )

        match await S.run(saga):
            case Ok(result):
                order: Order = result.value
            case Error(failure):
                logger.info("Order placement failed for user %s: %s", user.user_id, failure.error)
                return Error(failure.error)

        money_log.info(
            "order %s placed user=%s method=%s total=%s",
            order.order_number, user.user_id, method.value, format_rupees(order.pricing.final_amount),
        )
        if method is not PaymentMethod.RAZORPAY:
            await self._clear_cart(order)
        return Ok(order)

    async def _price_lines(self, cart: CartSnapshot) -> Result[tuple[OrderLine, ...], CoreError]:
        """Re-check availability and capture live unit prices."""
        lines: list[OrderLine] = []
        for item in cart.lines:
            if item.quantity > self._settings.max_line_quantity:
                return Error(Errors.validation(
                    f"At most {self._settings.max_line_quantity} units per item"
                ))
            match lift_store(await self._store.get_product(item.product_id)):
                case Ok(product):
                    pass
                case Error(e):
                    return Error(e)
            variant = product.variant(item.variant_id) if product else None
            if product is None or variant is None:
                return Error(Errors.not_found("Product variant", f"{item.product_id}/{item.variant_id}"))
            if product.blocked or variant.discontinued:
                return Error(Errors.validation(f"{product.name} is no longer available"))
            if variant.stock < item.quantity:
                return Error(Errors.insufficient_stock(
                    f"{product.name} ({variant.color_name})", variant.stock, item.quantity
                ))
            match await self._prices.unit_price(product, variant):
                case Ok(unit_price):
                    pass
                case Error(e):
                    return Error(e)
            lines.append(OrderLine(
                id=new_id(),
                product_id=item.product_id,
                variant_id=item.variant_id,
                quantity=item.quantity,
                unit_price=unit_price,
            ))
        return Ok(tuple(lines))

    def _charge_and_insert(self, order: Order) -> S.SagaExpr[Order, CoreError]:
        insert = S.from_result(lambda: self._insert(order))
        match order.payment:
            case WalletPayment():
                return self._wallet.debit_step(
                    order.user_id,
                    order.pricing.final_amount,
                    order.id,
                    f"Payment for order #{order.order_number}",
                ).then(lambda _: insert)
            case CodPayment() | RazorpayPayment():
                return insert
            case _:
                assert_never(order.payment)

    async def _insert(self, order: Order) -> Result[Order, CoreError]:
        match lift_store(await self._store.insert_order(order)):
            case Ok(_):
                return Ok(order)
            case Error(e):
                return Error(e)

    async def _clear_cart(self, order: Order) -> None:
        match lift_store(await self._store.clear_cart(order.user_id)):
            case Ok(_):
                pass
            case Error(e):
                logger.warning("Order %s placed but cart was not cleared: %s", order.order_number, e)

    # ═══════════════════════════════════════════════════════════════════════════
    # update_order_status() — admin
    # ═══════════════════════════════════════════════════════════════════════════

    async def update_order_status(
        self,
        admin: UserContext,
        order_id: OrderId,
        new_status: OrderStatus,
    ) -> Result[Order, CoreError]:
        if not admin.is_admin:
            return Error(Errors.unauthorized("Only administrators can change order status"))

        match await self._load(order_id):
            case Ok(order):
                pass
            case Error(e):
                return Error(e)

        allowed = [s.value for s in allowed_next(order.status)]
        if OrderStatus.RETURN_REQUESTED in (order.status, new_status) or new_status is OrderStatus.RETURNED:
            return Error(Errors.invalid_transition(
                order.status.value, new_status.value, allowed,
                "Returns are handled through return requests",
            ))
        match require_transition(order.status, new_status):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass

        effects: list[Effect] = []
        match new_status:
            case OrderStatus.SHIPPED:
                after = self._with_item_status(order, ItemStatus.SHIPPED)
            case OrderStatus.DELIVERED:
                match order.payment:
                    case CodPayment():
                        payment = with_payment_status(order.payment, PaymentStatus.COMPLETED)
                    case RazorpayPayment() | WalletPayment():
                        if order.payment.status is not PaymentStatus.COMPLETED:
                            return Error(Errors.invalid_transition(
                                order.status.value, new_status.value, allowed,
                                "Payment must be completed before the order is delivered",
                            ))
                        payment = order.payment
                    case _:
                        assert_never(order.payment)
                after = replace(self._with_item_status(order, ItemStatus.DELIVERED), payment=payment)
            case OrderStatus.CANCELLED:
                after, effects = self._cancellation(order, None)
            case _:
                return Error(Errors.invalid_transition(order.status.value, new_status.value, allowed))

        return await self._commit(order, replace(after, status=new_status), effects)

    def _with_item_status(self, order: Order, status: ItemStatus) -> Order:
        return order.with_lines(*(replace(line, item_status=status) for line in order.active_lines))

    # ═══════════════════════════════════════════════════════════════════════════
    # Cancellation
    # ═══════════════════════════════════════════════════════════════════════════

    async def cancel_order(
        self,
        user: UserContext,
        order_id: OrderId,
        reason: str | None = None,
    ) -> Result[Order, CoreError]:
        """Cancel a Processing order: restock everything, refund if paid."""
        match await self._load_owned(user, order_id):
            case Ok(order):
                pass
            case Error(e):
                return Error(e)

        if order.status is not OrderStatus.PROCESSING:
            return Error(Errors.invalid_transition(
                order.status.value,
                OrderStatus.CANCELLED.value,
                (s.value for s in allowed_next(order.status)),
                "Only orders that are still processing can be cancelled",
            ))

        after, effects = self._cancellation(order, reason)
        return await self._commit(order, replace(after, status=OrderStatus.CANCELLED), effects)

    def _cancellation(
        self,
        order: Order,
        reason: str | None,
    ) -> tuple[Order, list[Effect]]:
        effects = [self._restock(line) for line in order.lines if line.holds_stock]
        cancelled = [
            replace(line, item_status=ItemStatus.CANCELLED, cancel_reason=reason)
            for line in order.active_lines
        ]
        pricing = order.pricing
        payment_status = PaymentStatus.ORDER_CANCELLED

        if order.payment.status is PaymentStatus.COMPLETED and pricing.refundable > 0:
            amount = pricing.refundable
            effects.append(self._refund(
                order, amount, TxStatus.COMPLETED,
                f"Refund for cancelled order #{order.order_number}",
            ))
            pricing = replace(pricing, refunded=pricing.refunded + amount)
            payment_status = PaymentStatus.REFUNDED

        after = replace(
            order.with_lines(*cancelled),
            cancel_reason=reason,
            pricing=pricing,
            payment=with_payment_status(order.payment, payment_status),
        )
        return after, effects

    async def cancel_item(
        self,
        user: UserContext,
        order_id: OrderId,
        line_id: LineId,
        reason: str | None = None,
    ) -> Result[Order, CoreError]:
        """
        Cancel one line of a Processing order.

        Refund (when paid) is the line's subtotal plus its share of tax minus
        its share of the coupon discount. Cancelling the last line cancels
        the order and refunds whatever is left, which covers shipping.
        """
        match await self._load_owned(user, order_id):
            case Ok(order):
                pass
            case Error(e):
                return Error(e)

        line = order.line(line_id)
        if line is None:
            return Error(Errors.not_found("Order item", line_id))
        if order.status is not OrderStatus.PROCESSING:
            return Error(Errors.invalid_transition(
                order.status.value,
                OrderStatus.CANCELLED.value,
                (s.value for s in allowed_next(order.status)),
                "Items can only be cancelled while the order is processing",
            ))
        if line.is_cancelled:
            return Error(Errors.invalid_transition(
                ItemStatus.CANCELLED.value, ItemStatus.CANCELLED.value, (),
                "This item is already cancelled",
            ))

        share = prorate(line.subtotal, order.pricing)
        last = all(other.is_cancelled for other in order.lines if other.id != line.id)
        pricing = reprice_without(order.pricing, share, self._settings, last_line=last)
        effects: list[Effect] = [self._restock(line)]
        paid = order.payment.status is PaymentStatus.COMPLETED

        if paid:
            refund = min(share.refund, order.pricing.refundable)
            if refund > 0:
                effects.append(self._refund(
                    order, refund, TxStatus.COMPLETED,
                    f"Refund for cancelled item in order #{order.order_number}",
                ))
            remainder = order.pricing.refundable - refund if last else 0
            if remainder > 0:
                effects.append(self._refund(
                    order, remainder, TxStatus.COMPLETED,
                    f"Refund of remaining amount for cancelled order #{order.order_number}",
                ))
            pricing = replace(pricing, refunded=pricing.refunded + refund + max(0, remainder))

        after = replace(
            order.with_lines(replace(line, item_status=ItemStatus.CANCELLED, cancel_reason=reason)),
            pricing=pricing,
        )
        if last:
            after = replace(
                after,
                status=OrderStatus.CANCELLED,
                cancel_reason=reason,
                payment=with_payment_status(
                    order.payment,
                    PaymentStatus.REFUNDED if paid else PaymentStatus.ORDER_CANCELLED,
                ),
            )
        return await self._commit(order, after, effects)

    # ═══════════════════════════════════════════════════════════════════════════
    # Returns
    # ═══════════════════════════════════════════════════════════════════════════

    async def return_order(
        self,
        user: UserContext,
        order_id: OrderId,
        reason: str,
    ) -> Result[Order, CoreError]:
        return await self._request_return(user, order_id, None, reason)

    async def return_item(
        self,
        user: UserContext,
        order_id: OrderId,
        line_id: LineId,
        reason: str,
    ) -> Result[Order, CoreError]:
        return await self._request_return(user, order_id, line_id, reason)

    async def _request_return(
        self,
        user: UserContext,
        order_id: OrderId,
        line_id: LineId | None,
        reason: str,
    ) -> Result[Order, CoreError]:
        """Restock immediately and park a Pending refund until an admin decides."""
        if not reason or not reason.strip():
            return Error(Errors.validation("Return reason is required"))

        match await self._load_owned(user, order_id):
            case Ok(order):
                pass
            case Error(e):
                return Error(e)

        if order.status is not OrderStatus.DELIVERED:
            return Error(Errors.invalid_transition(
                order.status.value,
                OrderStatus.RETURN_REQUESTED.value,
                (s.value for s in allowed_next(order.status)),
                "Only delivered orders can be returned",
            ))

        if line_id is None:
            targets = [line for line in order.lines if line.is_returnable]
            if not targets:
                return Error(Errors.validation("No items in this order can be returned"))
        else:
            line = order.line(line_id)
            if line is None:
                return Error(Errors.not_found("Order item", line_id))
            if not line.is_returnable:
                return Error(Errors.validation("This item cannot be returned"))
            targets = [line]

        record = ReturnRecord(ReturnStatus.PENDING, reason.strip(), self._clock())
        effects: list[Effect] = [self._restock(line) for line in targets]
        amount = min(
            sum(prorate(line.subtotal, order.pricing).refund for line in targets),
            order.pricing.refundable,
        )
        if order.payment.status is PaymentStatus.COMPLETED and amount > 0:
            effects.append(self._refund(
                order, amount, TxStatus.PENDING,
                f"Refund for returned item(s) in order #{order.order_number}",
            ))

        after = replace(
            order.with_lines(*(replace(line, return_record=record) for line in targets)),
            status=OrderStatus.RETURN_REQUESTED,
        )
        return await self._commit(order, after, effects)

    async def verify_return_request(
        self,
        admin: UserContext,
        order_id: OrderId,
        action: ReturnAction | str,
    ) -> Result[Order, CoreError]:
        """
        approve: Pending refund completed, order Returned.
        reject:  goods stay with the customer, stock re-reserved, Pending
                 refund removed, order back to Delivered.
        """
        if not admin.is_admin:
            return Error(Errors.unauthorized("Only administrators can review returns"))
        try:
            action = ReturnAction(action)
        except ValueError:
            return Error(Errors.validation(f"Unknown return action: {action!r}"))

        match await self._load(order_id):
            case Ok(order):
                pass
            case Error(e):
                return Error(e)

        target = OrderStatus.RETURNED if action is ReturnAction.APPROVE else OrderStatus.DELIVERED
        match require_transition(order.status, target):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass

        match await self._pending_refund(order):
            case Ok(pending_tx):
                pass
            case Error(e):
                return Error(e)

        pending = [line for line in order.lines if line.return_status is ReturnStatus.PENDING]
        effects: list[Effect] = []

        match action:
            case ReturnAction.APPROVE:
                after = order.with_lines(*(_with_return_status(l, ReturnStatus.APPROVED) for l in pending))
                pricing = order.pricing
                payment = order.payment
                if pending_tx is not None:
                    effects.append(S.from_result(
                        lambda: self._wallet.complete_pending(order.user_id, order.id)
                    ))
                    pricing = replace(pricing, refunded=pricing.refunded + pending_tx.amount)
                if payment.status is PaymentStatus.COMPLETED and not any(l.holds_stock for l in after.lines):
                    payment = with_payment_status(payment, PaymentStatus.REFUNDED)
                after = replace(after, status=OrderStatus.RETURNED, pricing=pricing, payment=payment)

            case ReturnAction.REJECT:
                after = order.with_lines(*(_with_return_status(l, ReturnStatus.REJECTED) for l in pending))
                effects.extend(self._reserve(line) for line in pending)
                if pending_tx is not None:
                    effects.append(S.from_result(
                        lambda: self._wallet.discard_pending(order.user_id, order.id)
                    ))
                after = replace(after, status=OrderStatus.DELIVERED)

            case _:
                assert_never(action)

        return await self._commit(order, after, effects)

    async def _pending_refund(self, order: Order) -> Result[WalletTransaction | None, CoreError]:
        match lift_store(await self._store.get_wallet(order.user_id)):
            case Ok(wallet):
                pass
            case Error(e):
                return Error(e)
        if wallet is None:
            return Ok(None)
        for tx in wallet.transactions:
            if tx.order_id == order.id and tx.type is TxType.REFUND and tx.status is TxStatus.PENDING:
                return Ok(tx)
        return Ok(None)

    # ═══════════════════════════════════════════════════════════════════════════
    # verify_payment() — gateway callback
    # ═══════════════════════════════════════════════════════════════════════════

    async def verify_payment(
        self,
        order_id: OrderId,
        confirmation: GatewayConfirmation,
    ) -> Result[Order, CoreError]:
        """
        Settle a gateway payment.

        Genuine confirmation: payment Completed, cart cleared.
        Bad signature: payment and order Failed, stock and coupon use
        released, and PAYMENT_FAILED is returned.

        A confirmation for another gateway order, or a verifier that raises,
        changes nothing.
        """
        if self._verifier is None:
            return Error(Errors.validation("Payment verification is not configured"))

        match await self._load(order_id):
            case Ok(order):
                pass
            case Error(e):
                return Error(e)

        match order.payment:
            case RazorpayPayment() as payment:
                pass
            case CodPayment() | WalletPayment():
                return Error(Errors.validation("Order was not paid through the payment gateway"))
            case _:
                assert_never(order.payment)

        if payment.status is not PaymentStatus.PENDING or order.status is not OrderStatus.PROCESSING:
            return Error(Errors.invalid_transition(
                payment.status.value, PaymentStatus.COMPLETED.value, (),
                f"Payment for this order is already {payment.status.value.lower()}",
            ))

        if confirmation.gateway_order_id != payment.gateway_order_id:
            return Error(Errors.validation("Confirmation belongs to a different gateway order"))

        verifier = self._verifier
        check = S.from_async(
            lambda: verifier.verify(confirmation),
            on_error=lambda e: Errors.payment_failed(f"Payment could not be verified: {e}"),
        )
        match await S.run(check):
            case Ok(checked):
                genuine = checked.value
            case Error(failure):
                logger.error(
                    "Verifier raised for order %s, left pending: %s",
                    order.order_number, failure.error,
                )
                return Error(failure.error)

        if genuine:
            settled = RazorpayPayment(
                status=PaymentStatus.COMPLETED,
                gateway_order_id=confirmation.gateway_order_id,
                gateway_payment_id=confirmation.gateway_payment_id,
            )
            match await self._commit(order, replace(order, payment=settled)):
                case Ok(saved):
                    money_log.info(
                        "order %s gateway payment %s completed amount=%s",
                        saved.order_number, confirmation.gateway_payment_id,
                        format_rupees(saved.pricing.final_amount),
                    )
                    await self._clear_cart(saved)
                    return Ok(saved)
                case Error(e):
                    return Error(e)

        match require_transition(order.status, OrderStatus.FAILED, system=True):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass

        effects: list[Effect] = [self._restock(line) for line in order.lines if line.holds_stock]
        if order.coupon is not None:
            effects.append(self._release_coupon(order.coupon.code))
        failed = replace(
            order.with_lines(*(
                replace(line, item_status=ItemStatus.CANCELLED, cancel_reason="Payment failed")
                for line in order.active_lines
            )),
            status=OrderStatus.FAILED,
            payment=with_payment_status(payment, PaymentStatus.FAILED),
        )
        match await self._commit(order, failed, effects):
            case Ok(_):
                logger.warning("Payment verification failed for order %s", order.order_number)
                return Error(Errors.payment_failed("Payment verification failed"))
            case Error(e):
                return Error(e)

    # ═══════════════════════════════════════════════════════════════════════════
    # Commit machinery
    # ═══════════════════════════════════════════════════════════════════════════

    async def _save(self, before: Order, after: Order) -> Result[Order, CoreError]:
        saved = replace(after, version=before.version + 1, updated_at=self._clock())
        match lift_store(await self._store.update_order(saved, before.version)):
            case Ok(True):
                if saved.status is not before.status:
                    money_log.info(
                        "order %s %s -> %s",
                        saved.order_number, before.status.value, saved.status.value,
                    )
                return Ok(saved)
            case Ok(False):
                return Error(Errors.concurrent_update(before.id))
            case Error(e):
                return Error(e)

    async def _revert(self, saved: Order, before: Order) -> None:
        restored = replace(before, version=saved.version + 1, updated_at=self._clock())
        match lift_store(await self._store.update_order(restored, saved.version)):
            case Ok(True):
                logger.warning("Order %s restored to %s", before.order_number, before.status.value)
            case Ok(False):
                raise S.CompensationFailed(f"order {before.id} changed before it could be restored")
            case Error(e):
                raise S.CompensationFailed(f"restore order {before.id}: {e}")

    async def _commit(
        self,
        before: Order,
        after: Order,
        effects: Iterable[Effect] = (),
    ) -> Result[Order, CoreError]:
        """Claim the new state (compare-and-swap), then run side effects."""
        claim = S.from_result(
            lambda: self._save(before, after),
            compensate=lambda saved: self._revert(saved, before),
        )
        match await S.run(S.sequence(claim, *effects)):
            case Ok(result):
                return Ok(result.value[0])
            case Error(failure):
                return Error(failure.error)

    # ── Effects ──────────────────────────────────────────────────────────────

    def _reserve(self, line: OrderLine) -> Effect:
        return self._inventory.reserve_step(line.product_id, line.variant_id, line.quantity)

    def _restock(self, line: OrderLine) -> Effect:
        async def undo(_: int) -> None:
            match await self._inventory.reserve(line.product_id, line.variant_id, line.quantity):
                case Ok(_):
                    pass
                case Error(e):
                    raise S.CompensationFailed(f"re-reserve line {line.id}: {e}")

        return S.from_result(
            lambda: self._inventory.release(line.product_id, line.variant_id, line.quantity),
            compensate=undo,
        )

    def _refund(self, order: Order, amount: Paise, status: TxStatus, description: str) -> Effect:
        async def undo(tx: WalletTransaction) -> None:
            match tx.status:
                case TxStatus.PENDING:
                    result = await self._wallet.discard_pending(order.user_id, order.id)
                case TxStatus.COMPLETED:
                    result = await self._wallet.debit(
                        order.user_id, tx.amount, order.id, f"Reversal: {tx.description}"
                    )
            match result:
                case Ok(_):
                    pass
                case Error(e):
                    raise S.CompensationFailed(f"undo refund {tx.id}: {e}")

        return S.from_result(
            lambda: self._wallet.credit(order.user_id, amount, TxType.REFUND, order.id, status, description),
            compensate=undo,
        )

    def _consume_coupon(self, code: str) -> Effect:
        async def consume() -> Result[str, CoreError]:
            match lift_store(await self._store.consume_coupon(code)):
                case Ok(True):
                    return Ok(code)
                case Ok(False):
                    return Error(Errors.invalid_coupon("This coupon has reached its usage limit"))
                case Error(e):
                    return Error(e)

        return S.from_result(consume, compensate=self._give_back_coupon)

    def _release_coupon(self, code: str) -> Effect:
        async def release() -> Result[str, CoreError]:
            match lift_store(await self._store.release_coupon(code)):
                case Ok(_):
                    return Ok(code)
                case Error(e):
                    return Error(e)

        return S.from_result(release)

    async def _give_back_coupon(self, code: str) -> None:
        match lift_store(await self._store.release_coupon(code)):
            case Ok(_):
                logger.warning("Released coupon use of %s", code)
            case Error(e):
                raise S.CompensationFailed(f"release coupon {code}: {e}")


def _with_return_status(line: OrderLine, status: ReturnStatus) -> OrderLine:
    assert line.return_record is not None
    return replace(line, return_record=replace(line.return_record, status=status))


__all__ = ("ReturnAction", "OrderService")
