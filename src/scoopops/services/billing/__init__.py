"""Billing services."""

from .aggregation import next_billing_amount, preview_billing_changes
from .pricing import monthly_price
from .proration import calculate_final_billing, calculate_pause_adjustments, calculate_service_change

__all__ = [
    "monthly_price",
    "calculate_service_change",
    "calculate_final_billing",
    "calculate_pause_adjustments",
    "next_billing_amount",
    "preview_billing_changes",
]
