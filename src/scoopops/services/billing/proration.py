"""Proration engine: mid-cycle service changes, cancellations and pauses."""

from __future__ import annotations

import logging
from datetime import date
from typing import Sequence

from ...errors import InvalidRequest, NotFound
from ...models.domain import AddOn, ServiceConfiguration, Subscription
from ...persistence.repository import BillingRepository
from .calendar import billing_cycle_of, cycle_length, days_between, days_remaining_in_month
from .models import (
    AddOnImpact,
    BillingPeriodBreakdown,
    FinalBilling,
    FrequencyImpact,
    PauseAdjustment,
    ProrationBreakdown,
    ProrationResult,
    ServiceImpact,
)
from .pricing import monthly_price

logger = logging.getLogger(__name__)

# Service visits per month used for the frequency-change impact.
SERVICES_PER_MONTH = {
    "weekly": 4,
    "biweekly": 2,
    "monthly": 1,
}

# Pause credits use a flat month length rather than the calendar month.
PAUSE_DAYS_PER_MONTH = 30


def load_subscription(subscription_id: str, repository: BillingRepository) -> Subscription:
    subscription = repository.get_subscription(subscription_id)
    if subscription is None:
        raise NotFound("Subscription", subscription_id)
    return subscription


def calculate_frequency_impact(current_frequency: str, new_frequency: str, effective_date: date) -> FrequencyImpact:
    """Extra or dropped visits for the rest of the month after a frequency change."""
    current_per_month = SERVICES_PER_MONTH.get(current_frequency, 0)
    new_per_month = SERVICES_PER_MONTH.get(new_frequency, 0)
    difference = new_per_month - current_per_month

    proportional_change = difference * days_remaining_in_month(effective_date) / 30

    return FrequencyImpact(
        current_frequency=current_frequency,
        new_frequency=new_frequency,
        current_services_per_month=current_per_month,
        new_services_per_month=new_per_month,
        service_difference=difference,
        additional_services=max(0.0, proportional_change),
        removed_services=max(0.0, -proportional_change),
    )


def calculate_add_on_impact(
    current_add_ons: Sequence[AddOn],
    new_add_ons: Sequence[AddOn],
    remaining_services: int,
) -> AddOnImpact:
    """Cost of add-ons gained or lost across the remaining scheduled visits."""
    current_ids = {add_on.id for add_on in current_add_ons}
    new_ids = {add_on.id for add_on in new_add_ons}

    added = [add_on for add_on in new_add_ons if add_on.id not in current_ids]
    removed = [add_on for add_on in current_add_ons if add_on.id not in new_ids]

    added_cost = sum(add_on.price * remaining_services for add_on in added)
    removed_cost = sum(add_on.price * remaining_services for add_on in removed)

    return AddOnImpact(
        added_services=added,
        removed_services=removed,
        added_cost=added_cost,
        removed_cost=removed_cost,
        net_cost_change=added_cost - removed_cost,
    )


def calculate_service_impact(
    subscription: Subscription,
    new_config: ServiceConfiguration,
    effective_date: date,
    *,
    repository: BillingRepository,
) -> ServiceImpact:
    cycle = billing_cycle_of(subscription)
    current_config = subscription.service_configuration
    remaining = repository.get_scheduled_services(subscription.id, effective_date, cycle.end)

    return ServiceImpact(
        remaining_services=len(remaining),
        frequency_change=calculate_frequency_impact(
            current_config.frequency, new_config.frequency, effective_date
        ),
        add_on_changes=calculate_add_on_impact(
            current_config.add_ons, new_config.add_ons, len(remaining)
        ),
    )


def calculate_service_change(
    subscription: Subscription,
    new_config: ServiceConfiguration,
    effective_date: date,
    *,
    repository: BillingRepository,
) -> ProrationResult:
    """Prorated charge or credit for switching configurations mid-cycle.

    ``proration_amount`` is always non-negative; ``type`` carries the direction.
    A price increase (or no change) is a ``charge``, a decrease a ``credit``.

    Raises:
        InvalidBillingCycle: if the current cycle has no length.
        NotFound: if either configuration references an unknown plan.
    """
    cycle = billing_cycle_of(subscription)
    total_days = cycle_length(cycle)
    days_remaining = days_between(effective_date, cycle.end)

    current_config = subscription.service_configuration
    current_price = monthly_price(current_config, repository)
    new_price = monthly_price(new_config, repository)
    price_difference = new_price - current_price

    proration_amount = abs(price_difference * days_remaining / total_days)
    proration_type = "charge" if price_difference >= 0 else "credit"

    logger.info(
        f"Proration for subscription {subscription.id}: {proration_type} {proration_amount:.2f} "
        f"({days_remaining}/{total_days} days remaining)"
    )

    return ProrationResult(
        current_price=current_price,
        new_price=new_price,
        price_difference=price_difference,
        proration_amount=proration_amount,
        type=proration_type,
        days_remaining=days_remaining,
        total_days_in_cycle=total_days,
        effective_date=effective_date,
        service_impact=calculate_service_impact(
            subscription, new_config, effective_date, repository=repository
        ),
        breakdown=ProrationBreakdown(
            current_configuration=current_config,
            new_configuration=new_config,
            billing_period=BillingPeriodBreakdown(
                total_days=total_days,
                days_remaining=days_remaining,
                days_used=total_days - days_remaining,
                proration_percentage=days_remaining / total_days * 100,
            ),
        ),
    )


def calculate_final_billing(
    subscription_id: str,
    cancellation_date: date,
    *,
    repository: BillingRepository,
) -> FinalBilling:
    """Refund for unused days netted against unpaid invoices.

    Only days left in the current cycle are refunded; a cancellation on or
    after the cycle end refunds nothing. At most one of ``net_refund`` and
    ``final_charges`` is positive.
    """
    subscription = load_subscription(subscription_id, repository)
    cycle = billing_cycle_of(subscription)
    total_days = cycle_length(cycle)

    provided = repository.get_completed_services(subscription_id, cycle.start, cancellation_date)
    scheduled = repository.get_scheduled_services(subscription_id, cancellation_date, cycle.end)

    price = monthly_price(subscription.service_configuration, repository)
    daily_rate = price / total_days
    # Days after the cycle end were never billed, so they earn nothing back.
    unused_days = max(0, (cycle.end - cancellation_date).days)
    refund = max(0.0, daily_rate * unused_days)

    outstanding = sum(invoice.total_amount for invoice in repository.get_unpaid_invoices(subscription_id))

    return FinalBilling(
        cancellation_date=cancellation_date,
        services_provided=len(provided),
        scheduled_services=len(scheduled),
        monthly_price=price,
        unused_days=unused_days,
        refund_amount=refund,
        outstanding_charges=outstanding,
        net_refund=max(0.0, refund - outstanding),
        final_charges=max(0.0, outstanding - refund),
    )


def calculate_pause_adjustments(
    subscription_id: str,
    pause_start: date,
    pause_end: date,
    *,
    repository: BillingRepository,
) -> PauseAdjustment:
    """Credit owed for a service pause, applied to the next billing cycle."""
    if pause_end < pause_start:
        raise InvalidRequest(f"Pause end {pause_end} is before pause start {pause_start}")

    subscription = load_subscription(subscription_id, repository)
    price = monthly_price(subscription.service_configuration, repository)

    pause_days = days_between(pause_start, pause_end)
    daily_rate = price / PAUSE_DAYS_PER_MONTH
    skipped = repository.get_scheduled_services(subscription_id, pause_start, pause_end)

    return PauseAdjustment(
        pause_start=pause_start,
        pause_end=pause_end,
        pause_days=pause_days,
        skipped_services=len(skipped),
        daily_rate=daily_rate,
        credit_amount=daily_rate * pause_days,
    )
