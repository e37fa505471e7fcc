"""Next-invoice aggregation and change previews."""

from __future__ import annotations

from datetime import date

from ...models.domain import ServiceConfiguration
from ...persistence.repository import BillingRepository
from .models import (
    AnnualImpact,
    BillingPreview,
    ChangeSummary,
    NextBillingAmount,
    NextBillingBreakdown,
    NextCycleImpact,
    ProrationResult,
)
from .pricing import monthly_price
from .proration import calculate_service_change, load_subscription


def next_billing_amount(subscription_id: str, *, repository: BillingRepository) -> NextBillingAmount:
    """Amount due on the next invoice after pending prorations and credits.

    The final amount never drops below zero; unused credit stays on the account.
    """
    subscription = load_subscription(subscription_id, repository)
    base_price = monthly_price(subscription.service_configuration, repository)
    pending = repository.get_pending_changes(subscription_id)
    available_credits = repository.get_available_credits(subscription_id)

    charges = sum(change.proration_amount for change in pending if change.proration_type == "charge")
    credits = sum(change.proration_amount for change in pending if change.proration_type == "credit")
    adjustments = charges - credits
    subtotal = base_price + adjustments

    return NextBillingAmount(
        base_price=base_price,
        adjustments=adjustments,
        available_credits=available_credits,
        final_amount=max(0.0, subtotal - available_credits),
        breakdown=NextBillingBreakdown(
            base=base_price,
            proration_charges=charges,
            proration_credits=credits,
            applied_credits=max(0.0, min(available_credits, subtotal)),
        ),
    )


def calculate_next_cycle_impact(
    current: ServiceConfiguration,
    proposed: ServiceConfiguration,
    *,
    repository: BillingRepository,
) -> NextCycleImpact:
    current_price = monthly_price(current, repository)
    new_price = monthly_price(proposed, repository)
    difference = new_price - current_price
    return NextCycleImpact(
        current_monthly_price=current_price,
        new_monthly_price=new_price,
        monthly_difference=difference,
        percentage_change=difference / current_price * 100 if current_price > 0 else 0.0,
    )


def calculate_annual_impact(monthly: NextCycleImpact) -> AnnualImpact:
    annual_difference = monthly.monthly_difference * 12
    return AnnualImpact(
        current_annual_price=monthly.current_monthly_price * 12,
        new_annual_price=monthly.new_monthly_price * 12,
        annual_difference=annual_difference,
        annual_savings=max(0.0, -annual_difference),
        additional_annual_cost=max(0.0, annual_difference),
    )


def recommendation_for(annual: AnnualImpact) -> str:
    if annual.annual_savings > 0:
        return f"This change will save you ${annual.annual_savings:.2f} annually."
    if annual.additional_annual_cost > 0:
        return (
            f"This upgrade will cost an additional ${annual.additional_annual_cost:.2f} annually "
            "but provides enhanced service."
        )
    return "This change will not affect your annual cost."


def summarize_change(
    proration: ProrationResult,
    monthly: NextCycleImpact,
    annual: AnnualImpact,
) -> ChangeSummary:
    return ChangeSummary(
        immediate_charge=proration.proration_amount if proration.type == "charge" else 0.0,
        immediate_credit=proration.proration_amount if proration.type == "credit" else 0.0,
        monthly_change=monthly.monthly_difference,
        annual_change=annual.annual_difference,
        recommendation=recommendation_for(annual),
    )


def preview_billing_changes(
    subscription_id: str,
    proposed: ServiceConfiguration,
    effective_date: date,
    *,
    repository: BillingRepository,
) -> BillingPreview:
    """Immediate, monthly and annual effect of a proposed configuration."""
    subscription = load_subscription(subscription_id, repository)

    proration = calculate_service_change(subscription, proposed, effective_date, repository=repository)
    monthly = calculate_next_cycle_impact(
        subscription.service_configuration, proposed, repository=repository
    )
    annual = calculate_annual_impact(monthly)

    return BillingPreview(
        immediate_proration=proration,
        next_cycle_impact=monthly,
        annual_impact=annual,
        effective_date=effective_date,
        summary=summarize_change(proration, monthly, annual),
    )
