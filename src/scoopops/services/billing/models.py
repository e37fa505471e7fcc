"""Billing result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Literal

from ...models.domain import AddOn, ServiceConfiguration

ProrationType = Literal["charge", "credit"]


@dataclass(frozen=True, slots=True)
class BillingCycle:
    start: date
    end: date


@dataclass(slots=True)
class FrequencyImpact:
    current_frequency: str
    new_frequency: str
    current_services_per_month: int
    new_services_per_month: int
    service_difference: int
    additional_services: float
    removed_services: float


@dataclass(slots=True)
class AddOnImpact:
    added_services: list[AddOn]
    removed_services: list[AddOn]
    added_cost: float
    removed_cost: float
    net_cost_change: float


@dataclass(slots=True)
class ServiceImpact:
    remaining_services: int
    frequency_change: FrequencyImpact
    add_on_changes: AddOnImpact


@dataclass(slots=True)
class BillingPeriodBreakdown:
    total_days: int
    days_remaining: int
    days_used: int
    proration_percentage: float


@dataclass(slots=True)
class ProrationBreakdown:
    current_configuration: ServiceConfiguration
    new_configuration: ServiceConfiguration
    billing_period: BillingPeriodBreakdown


@dataclass(slots=True)
class ProrationResult:
    current_price: float
    new_price: float
    price_difference: float
    proration_amount: float
    type: ProrationType
    days_remaining: int
    total_days_in_cycle: int
    effective_date: date
    service_impact: ServiceImpact
    breakdown: ProrationBreakdown


@dataclass(slots=True)
class FinalBilling:
    cancellation_date: date
    services_provided: int
    scheduled_services: int
    monthly_price: float
    unused_days: int
    refund_amount: float
    outstanding_charges: float
    net_refund: float
    final_charges: float


@dataclass(slots=True)
class PauseAdjustment:
    pause_start: date
    pause_end: date
    pause_days: int
    skipped_services: int
    daily_rate: float
    credit_amount: float
    applied_to: str = "next_billing_cycle"


@dataclass(slots=True)
class NextBillingBreakdown:
    base: float
    proration_charges: float
    proration_credits: float
    applied_credits: float


@dataclass(slots=True)
class NextBillingAmount:
    base_price: float
    adjustments: float
    available_credits: float
    final_amount: float
    breakdown: NextBillingBreakdown


@dataclass(slots=True)
class NextCycleImpact:
    current_monthly_price: float
    new_monthly_price: float
    monthly_difference: float
    percentage_change: float


@dataclass(slots=True)
class AnnualImpact:
    current_annual_price: float
    new_annual_price: float
    annual_difference: float
    annual_savings: float
    additional_annual_cost: float


@dataclass(slots=True)
class ChangeSummary:
    immediate_charge: float
    immediate_credit: float
    monthly_change: float
    annual_change: float
    recommendation: str


@dataclass(slots=True)
class BillingPreview:
    immediate_proration: ProrationResult
    next_cycle_impact: NextCycleImpact
    annual_impact: AnnualImpact
    effective_date: date
    summary: ChangeSummary
    metadata: dict = field(default_factory=dict)
