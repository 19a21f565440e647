"""
Stripe webhook reconciliation: applies gateway events to local subscriptions
and payments.

Each event is applied in its own transaction together with a row in the
``stripe_events`` ledger, so a redelivered event id is a no-op. Handler
errors roll the transaction back and are logged; they never reach the
webhook response.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import stripe
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.base import as_utc
from app.models.payment import Payment, StripeEvent
from app.models.plan import Plan
from app.models.subscription import Subscription
from app.models.user import User
from app.services.notifications import deliver_in_app, fan_out
from hearth_shared.schemas.common import NotificationType, PaymentStatus, SubscriptionStatus

log = structlog.get_logger()

CENTS = Decimal("0.01")

# Gateway subscription statuses folded into the local closed set.
GATEWAY_STATUS_MAP: dict[str, SubscriptionStatus] = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIALING,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "incomplete": SubscriptionStatus.PAST_DUE,
    "paused": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "incomplete_expired": SubscriptionStatus.EXPIRED,
}


class EventOutcome(str, Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"  # unhandled event type
    SKIPPED = "skipped"  # local records missing; nothing written
    FAILED = "failed"


class WebhookVerificationError(Exception):
    """Raised when a delivery cannot be authenticated or parsed."""


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

def verify_webhook(
    payload: bytes, sig_header: Optional[str], secret: str, tolerance: int
) -> dict[str, Any]:
    """Check the ``stripe-signature`` header and return the decoded event."""
    if not sig_header or not secret:
        raise WebhookVerificationError("Webhook signature or secret missing.")
    try:
        text = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(text, sig_header, secret, tolerance)
        event = json.loads(text)
    except stripe.SignatureVerificationError as exc:
        raise WebhookVerificationError(f"Webhook Error: {exc.user_message or exc}") from exc
    except ValueError as exc:  # includes UnicodeDecodeError and JSONDecodeError
        raise WebhookVerificationError(f"Webhook Error: Invalid payload ({exc})") from exc
    if not isinstance(event, dict) or "id" not in event or "type" not in event:
        raise WebhookVerificationError("Webhook Error: Invalid payload")
    return event


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------

def _ts(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _amount(cents: Any) -> Decimal:
    return (Decimal(int(cents or 0)) / 100).quantize(CENTS)


def _invoice_subscription_id(invoice: dict) -> Optional[str]:
    """``subscription`` moved under ``parent.subscription_details`` in newer API versions."""
    sub = invoice.get("subscription")
    if not sub:
        details = (invoice.get("parent") or {}).get("subscription_details") or {}
        sub = details.get("subscription")
    if isinstance(sub, dict):
        sub = sub.get("id")
    return sub


def _first_item(obj: dict, key: str) -> dict:
    data = (obj.get(key) or {}).get("data") or []
    return data[0] if data else {}


def _invoice_period_end(invoice: dict) -> Optional[datetime]:
    return _ts((_first_item(invoice, "lines").get("period") or {}).get("end"))


def _subscription_period_end(subscription: dict) -> Optional[datetime]:
    end = subscription.get("current_period_end")
    if end is None:
        end = _first_item(subscription, "items").get("current_period_end")
    return _ts(end)


def map_gateway_status(status: Optional[str]) -> Optional[SubscriptionStatus]:
    return GATEWAY_STATUS_MAP.get(status or "")


def _is_stale(subscription: Subscription, event_time: datetime) -> bool:
    last_applied = as_utc(subscription.gateway_updated_at)
    return last_applied is not None and event_time < last_applied


async def _user_by_customer(session: AsyncSession, customer: Any) -> Optional[User]:
    if isinstance(customer, dict):
        customer = customer.get("id")
    if not customer:
        return None
    result = await session.execute(select(User).where(User.stripe_customer_id == customer))
    return result.scalar_one_or_none()


async def _subscription_by_external_id(
    session: AsyncSession,
    external_id: Optional[str],
    user_id: Optional[uuid.UUID] = None,
) -> Optional[Subscription]:
    """Invoices resolve on the (user, external id) pair; pass ``user_id`` for them."""
    if not external_id:
        return None
    query = select(Subscription).where(Subscription.stripe_subscription_id == external_id)
    if user_id is not None:
        query = query.where(Subscription.user_id == user_id)
    result = await session.execute(query.order_by(Subscription.created_at))
    return result.scalars().first()


async def _owned_by_another_user(
    session: AsyncSession, external_id: Optional[str], user_id: uuid.UUID
) -> bool:
    if not external_id:
        return False
    result = await session.execute(
        select(Subscription.id).where(
            Subscription.stripe_subscription_id == external_id,
            Subscription.user_id != user_id,
        )
    )
    return result.first() is not None


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

HandlerResult = tuple[EventOutcome, list]
Handler = Callable[[AsyncSession, dict, datetime, str], Awaitable[HandlerResult]]


async def handle_payment_succeeded(
    session: AsyncSession, invoice: dict, event_time: datetime, event_id: str
) -> HandlerResult:
    bound = log.bind(event_id=event_id, invoice_id=invoice.get("id"))
    user = await _user_by_customer(session, invoice.get("customer"))
    if not user:
        bound.error("billing.user_not_found", customer=invoice.get("customer"))
        return EventOutcome.SKIPPED, []

    external_id = _invoice_subscription_id(invoice)
    subscription = await _subscription_by_external_id(session, external_id, user.id)
    if not subscription:
        if await _owned_by_another_user(session, external_id, user.id):
            bound.error(
                "billing.subscription_owner_mismatch",
                stripe_subscription_id=external_id,
                user_id=str(user.id),
            )
        else:
            bound.error("billing.subscription_not_found", stripe_subscription_id=external_id)
        return EventOutcome.SKIPPED, []

    amount = _amount(invoice.get("amount_paid"))
    currency = (invoice.get("currency") or "usd").upper()
    paid_at = _ts((invoice.get("status_transitions") or {}).get("paid_at")) or event_time
    payment = Payment(
        user_id=user.id,
        subscription_id=subscription.id,
        plan_id=subscription.plan_id,
        amount=amount,
        currency=currency,
        payment_gateway="stripe",
        gateway_id=invoice.get("charge") or invoice.get("payment_intent") or invoice.get("id"),
        gateway_event_id=event_id,
        status=PaymentStatus.SUCCEEDED,
        paid_at=paid_at,
    )
    session.add(payment)

    if _is_stale(subscription, event_time):
        bound.warning("billing.stale_event", subscription_id=str(subscription.id))
    else:
        subscription.status = SubscriptionStatus.ACTIVE
        subscription.end_date = _invoice_period_end(invoice) or subscription.end_date
        subscription.gateway_updated_at = event_time
    await session.flush()
    bound.info(
        "billing.payment_recorded",
        payment_id=str(payment.id),
        subscription_id=str(subscription.id),
        amount=str(amount),
        currency=currency,
    )

    notifications = await fan_out(
        session,
        [user.id],
        NotificationType.PAYMENT_SUCCESSFUL,
        community_id=subscription.community_id,
        related_entity_type="payment",
        related_entity_id=str(payment.id),
        title="Payment received",
        message=f"We received your payment of {amount} {currency}.",
        data={"amount": str(amount), "currency": currency, "invoiceId": invoice.get("id")},
    )
    return EventOutcome.PROCESSED, notifications


async def handle_payment_failed(
    session: AsyncSession, invoice: dict, event_time: datetime, event_id: str
) -> HandlerResult:
    bound = log.bind(event_id=event_id, invoice_id=invoice.get("id"))
    user = await _user_by_customer(session, invoice.get("customer"))
    if not user:
        bound.error("billing.user_not_found", customer=invoice.get("customer"))
        return EventOutcome.SKIPPED, []

    # one-off invoices have no subscription; the payment is still recorded
    external_id = _invoice_subscription_id(invoice)
    subscription = await _subscription_by_external_id(session, external_id, user.id)
    if not subscription and await _owned_by_another_user(session, external_id, user.id):
        bound.error(
            "billing.subscription_owner_mismatch",
            stripe_subscription_id=external_id,
            user_id=str(user.id),
        )
        return EventOutcome.SKIPPED, []

    amount = _amount(invoice.get("amount_due"))
    currency = (invoice.get("currency") or "usd").upper()
    payment = Payment(
        user_id=user.id,
        subscription_id=subscription.id if subscription else None,
        plan_id=subscription.plan_id if subscription else None,
        amount=amount,
        currency=currency,
        payment_gateway="stripe",
        gateway_id=invoice.get("payment_intent") or invoice.get("id"),
        gateway_event_id=event_id,
        status=PaymentStatus.FAILED,
        paid_at=None,
    )
    session.add(payment)

    if subscription:
        if _is_stale(subscription, event_time):
            bound.warning("billing.stale_event", subscription_id=str(subscription.id))
        else:
            try:
                subscription.status = SubscriptionStatus(invoice.get("status"))
            except ValueError:
                subscription.status = SubscriptionStatus.PAST_DUE
            subscription.gateway_updated_at = event_time
    await session.flush()
    bound.info(
        "billing.payment_failed_recorded",
        payment_id=str(payment.id),
        subscription_id=str(subscription.id) if subscription else None,
    )

    notifications = await fan_out(
        session,
        [user.id],
        NotificationType.PAYMENT_FAILED,
        community_id=subscription.community_id if subscription else None,
        related_entity_type="payment",
        related_entity_id=str(payment.id),
        title="Payment failed",
        message=f"Your payment of {amount} {currency} could not be processed.",
        data={"amount": str(amount), "currency": currency, "invoiceId": invoice.get("id")},
    )
    return EventOutcome.PROCESSED, notifications


async def handle_subscription_updated(
    session: AsyncSession, gateway_sub: dict, event_time: datetime, event_id: str
) -> HandlerResult:
    bound = log.bind(event_id=event_id, stripe_subscription_id=gateway_sub.get("id"))
    subscription = await _subscription_by_external_id(session, gateway_sub.get("id"))
    if not subscription:
        # created only by the payment setup flow, never from this event
        bound.warning("billing.subscription_not_found")
        return EventOutcome.SKIPPED, []

    if _is_stale(subscription, event_time):
        bound.warning("billing.stale_event", subscription_id=str(subscription.id))
        return EventOutcome.SKIPPED, []

    price_id = (_first_item(gateway_sub, "items").get("price") or {}).get("id")
    if price_id:
        result = await session.execute(select(Plan).where(Plan.stripe_price_id == price_id))
        plan = result.scalar_one_or_none()
        if plan:
            subscription.plan_id = plan.id
        else:
            bound.warning("billing.plan_not_found", stripe_price_id=price_id)

    status = map_gateway_status(gateway_sub.get("status"))
    if status is None:
        bound.warning("billing.unknown_gateway_status", gateway_status=gateway_sub.get("status"))
    else:
        subscription.status = status
    subscription.end_date = _subscription_period_end(gateway_sub) or subscription.end_date
    subscription.gateway_updated_at = event_time
    await session.flush()
    bound.info(
        "billing.subscription_updated",
        subscription_id=str(subscription.id),
        status=SubscriptionStatus(subscription.status).value,
    )
    return EventOutcome.PROCESSED, []


async def handle_subscription_deleted(
    session: AsyncSession, gateway_sub: dict, event_time: datetime, event_id: str
) -> HandlerResult:
    """Terminal: every local row for the external id is canceled, regardless of order."""
    bound = log.bind(event_id=event_id, stripe_subscription_id=gateway_sub.get("id"))
    result = await session.execute(
        select(Subscription).where(Subscription.stripe_subscription_id == gateway_sub.get("id"))
    )
    subscriptions = result.scalars().all()
    if not subscriptions:
        bound.warning("billing.subscription_not_found")
        return EventOutcome.SKIPPED, []

    ended_at = (
        _ts(gateway_sub.get("ended_at")) or _ts(gateway_sub.get("canceled_at")) or event_time
    )
    for subscription in subscriptions:
        subscription.status = SubscriptionStatus.CANCELED
        subscription.end_date = ended_at
        last_applied = as_utc(subscription.gateway_updated_at)
        subscription.gateway_updated_at = max(last_applied, event_time) if last_applied else event_time
    await session.flush()
    bound.info("billing.subscription_canceled", count=len(subscriptions))
    return EventOutcome.PROCESSED, []


EVENT_HANDLERS: dict[str, Handler] = {
    "invoice.payment_succeeded": handle_payment_succeeded,
    "invoice.payment_failed": handle_payment_failed,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

async def _already_processed(session: AsyncSession, event_id: str) -> bool:
    result = await session.execute(
        select(StripeEvent.stripe_event_id).where(StripeEvent.stripe_event_id == event_id)
    )
    return result.scalar_one_or_none() is not None


async def _rollback(session: AsyncSession, bound) -> None:
    try:
        await session.rollback()
    except Exception:
        bound.exception("billing.rollback_failed")


async def process_event(session: AsyncSession, event: dict[str, Any]) -> EventOutcome:
    """Apply one verified gateway event atomically. Never raises."""
    event_id = event["id"]
    event_type = event["type"]
    bound = log.bind(event_id=event_id, event_type=event_type)

    event_time = _ts(event.get("created")) or datetime.now(timezone.utc)
    obj = (event.get("data") or {}).get("object") or {}
    handler = EVENT_HANDLERS.get(event_type)

    try:
        if await _already_processed(session, event_id):
            bound.info("billing.event_duplicate")
            return EventOutcome.DUPLICATE

        if handler is None:
            bound.info("billing.event_unhandled")
            outcome, notifications = EventOutcome.IGNORED, []
        else:
            outcome, notifications = await handler(session, obj, event_time, event_id)

        if outcome is EventOutcome.SKIPPED:
            await session.rollback()
            return outcome

        session.add(StripeEvent(stripe_event_id=event_id, event_type=event_type))
        await session.commit()
    except IntegrityError:
        # a concurrent delivery of the same event committed first
        try:
            await session.rollback()
            if await _already_processed(session, event_id):
                bound.info("billing.event_duplicate", concurrent=True)
                return EventOutcome.DUPLICATE
        except Exception:
            bound.exception("billing.ledger_check_failed")
            return EventOutcome.FAILED
        bound.exception("billing.event_failed")
        return EventOutcome.FAILED
    except Exception:
        bound.exception("billing.event_failed")
        await _rollback(session, bound)
        return EventOutcome.FAILED

    bound.info("billing.event_processed", outcome=outcome.value)
    if notifications:
        try:
            await deliver_in_app(session, notifications)
        except Exception:
            bound.exception("billing.delivery_failed")
    return outcome
