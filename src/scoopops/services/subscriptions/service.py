"""Client-portal subscription workflows built on the billing engines."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from ...config import settings
from ...errors import InvalidRequest, NotFound
from ...models.domain import PendingChange, ServiceConfiguration, Subscription
from ...persistence.repository import BillingRepository
from ..billing.aggregation import next_billing_amount, preview_billing_changes
from ..billing.calendar import billing_cycle_of, days_between
from ..billing.models import BillingPreview, FinalBilling, NextBillingAmount, PauseAdjustment, ProrationResult
from ..billing.proration import calculate_final_billing, calculate_pause_adjustments, calculate_service_change
from ..payments.stripe_client import PaymentProvider

logger = logging.getLogger(__name__)

STRIPE = "stripe"


@dataclass(slots=True)
class CycleStatus:
    start: date
    end: date
    days_remaining: int
    total_days: int


@dataclass(slots=True)
class SubscriptionOverview:
    subscription: Subscription
    billing_cycle: CycleStatus
    pending_changes: list[PendingChange]
    next_billing_amount: NextBillingAmount


@dataclass(slots=True)
class ServiceChangeOutcome:
    change: PendingChange
    proration: ProrationResult
    applied_immediately: bool
    message: str
    payment_id: Optional[str] = None


@dataclass(slots=True)
class PauseOutcome:
    pause_request: dict
    adjustments: PauseAdjustment
    message: str


@dataclass(slots=True)
class ResumeOutcome:
    next_service_date: date
    message: str


@dataclass(slots=True)
class CancellationOutcome:
    cancellation_request: dict
    end_date: date
    final_billing: FinalBilling
    message: str


@dataclass(slots=True)
class PreviewOutcome:
    preview: BillingPreview
    current_plan: ServiceConfiguration
    proposed_plan: ServiceConfiguration
    metadata: dict = field(default_factory=dict)


def _subscription_for_client(client_id: str, repository: BillingRepository) -> Subscription:
    subscription = repository.get_subscription_by_client(client_id)
    if subscription is None:
        raise NotFound("Active subscription for client", client_id)
    return subscription


def _same_month(left: date, right: date) -> bool:
    return left.year == right.year and left.month == right.month


def get_subscription_overview(
    client_id: str, *, repository: BillingRepository, today: Optional[date] = None
) -> SubscriptionOverview:
    today = today or date.today()
    subscription = _subscription_for_client(client_id, repository)
    cycle = billing_cycle_of(subscription)
    return SubscriptionOverview(
        subscription=subscription,
        billing_cycle=CycleStatus(
            start=cycle.start,
            end=cycle.end,
            days_remaining=max(0, (cycle.end - today).days),
            total_days=days_between(cycle.start, cycle.end),
        ),
        pending_changes=repository.get_pending_changes(subscription.id),
        next_billing_amount=next_billing_amount(subscription.id, repository=repository),
    )


async def update_service_requirements(
    client_id: str,
    new_config: ServiceConfiguration,
    effective_date: date,
    *,
    repository: BillingRepository,
    payments: PaymentProvider,
    today: Optional[date] = None,
) -> ServiceChangeOutcome:
    """Record a service change and, for changes effective this month, bill it now."""
    today = today or date.today()
    subscription = await asyncio.to_thread(_subscription_for_client, client_id, repository)
    proration = await asyncio.to_thread(
        calculate_service_change, subscription, new_config, effective_date, repository=repository
    )

    change = await asyncio.to_thread(
        repository.create_pending_change,
        subscription.id,
        old_configuration=subscription.service_configuration,
        new_configuration=new_config,
        effective_date=effective_date,
        proration_amount=proration.proration_amount,
        proration_type=proration.type,
    )

    applied = _same_month(effective_date, today)
    payment_id = None
    if applied:
        payment_id = await _apply_service_change(subscription, change, proration, repository, payments)

    if proration.type == "charge":
        message = f"Service upgrade will result in a prorated charge of ${proration.proration_amount:.2f}"
    else:
        message = f"Service downgrade will result in a credit of ${proration.proration_amount:.2f} on your next bill"

    return ServiceChangeOutcome(
        change=change,
        proration=proration,
        applied_immediately=applied,
        message=message,
        payment_id=payment_id,
    )


async def _apply_service_change(
    subscription: Subscription,
    change: PendingChange,
    proration: ProrationResult,
    repository: BillingRepository,
    payments: PaymentProvider,
) -> Optional[str]:
    await asyncio.to_thread(repository.apply_pending_change, change.id)
    if proration.proration_amount <= 0:
        return None

    if proration.type == "credit":
        await asyncio.to_thread(
            repository.add_credit, subscription.id, proration.proration_amount, "Prorated credit for service downgrade"
        )
        return None

    invoice = await asyncio.to_thread(
        repository.create_invoice,
        subscription.id,
        proration.proration_amount,
        "Prorated charge for service upgrade",
        "proration",
    )
    if subscription.payment_provider == STRIPE and subscription.provider_customer_id:
        result = await payments.charge(
            proration.proration_amount,
            subscription.provider_customer_id,
            f"Proration invoice {invoice.id}",
        )
        logger.info(f"Charged proration invoice {invoice.id} for subscription {subscription.id}: {result.id}")
        return result.id
    return None


async def pause_subscription(
    client_id: str,
    pause_start: date,
    pause_end: date,
    reason: Optional[str] = None,
    *,
    repository: BillingRepository,
    payments: PaymentProvider,
) -> PauseOutcome:
    subscription = await asyncio.to_thread(_subscription_for_client, client_id, repository)
    adjustments = await asyncio.to_thread(
        calculate_pause_adjustments, subscription.id, pause_start, pause_end, repository=repository
    )
    pause_request = await asyncio.to_thread(
        repository.create_pause_request, subscription.id, pause_start, pause_end, reason
    )

    if subscription.payment_provider == STRIPE and subscription.provider_subscription_id:
        await payments.pause(subscription.provider_subscription_id)

    await asyncio.to_thread(
        repository.update_subscription,
        subscription.id,
        status="paused",
        pause_start_date=pause_start,
        pause_end_date=pause_end,
    )
    return PauseOutcome(
        pause_request=pause_request,
        adjustments=adjustments,
        message=f"Subscription paused from {pause_start:%a %b %d %Y} to {pause_end:%a %b %d %Y}",
    )


async def resume_subscription(
    client_id: str,
    resume_date: Optional[date] = None,
    *,
    repository: BillingRepository,
    payments: PaymentProvider,
) -> ResumeOutcome:
    subscription = await asyncio.to_thread(repository.get_subscription_by_client, client_id)
    if subscription is None or subscription.status != "paused":
        raise InvalidRequest("No paused subscription found")

    if subscription.payment_provider == STRIPE and subscription.provider_subscription_id:
        await payments.resume(subscription.provider_subscription_id)

    next_service_date = resume_date or date.today()
    await asyncio.to_thread(
        repository.update_subscription,
        subscription.id,
        status="active",
        pause_start_date=None,
        pause_end_date=None,
        next_service_date=next_service_date,
    )
    return ResumeOutcome(next_service_date=next_service_date, message="Subscription resumed successfully")


def cancel_subscription(
    client_id: str,
    requested_end_date: Optional[date] = None,
    reason: Optional[str] = None,
    feedback: Optional[str] = None,
    *,
    repository: BillingRepository,
    today: Optional[date] = None,
) -> CancellationOutcome:
    """Schedule cancellation no earlier than the notice period allows."""
    today = today or date.today()
    subscription = _subscription_for_client(client_id, repository)

    earliest = today + timedelta(days=settings.cancellation_notice_days)
    end_date = requested_end_date if requested_end_date and requested_end_date > earliest else earliest

    cancellation_request = repository.create_cancellation_request(subscription.id, end_date, reason, feedback)
    final_billing = calculate_final_billing(subscription.id, end_date, repository=repository)

    repository.update_subscription(
        subscription.id,
        status="cancellation_pending",
        end_date=end_date,
        cancellation_request_id=cancellation_request.get("id"),
    )
    return CancellationOutcome(
        cancellation_request=cancellation_request,
        end_date=end_date,
        final_billing=final_billing,
        message=(
            f"Cancellation scheduled for {end_date:%a %b %d %Y}. "
            "You will continue to receive service until this date."
        ),
    )


def next_billing_for_client(client_id: str, *, repository: BillingRepository) -> NextBillingAmount:
    subscription = _subscription_for_client(client_id, repository)
    return next_billing_amount(subscription.id, repository=repository)


def preview_changes(
    client_id: str,
    proposed: ServiceConfiguration,
    effective_date: date,
    *,
    repository: BillingRepository,
) -> PreviewOutcome:
    subscription = _subscription_for_client(client_id, repository)
    preview = preview_billing_changes(subscription.id, proposed, effective_date, repository=repository)
    return PreviewOutcome(
        preview=preview,
        current_plan=subscription.service_configuration,
        proposed_plan=proposed,
    )
