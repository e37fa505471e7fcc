"""Monthly pricing for a service configuration."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from ...errors import NotFound
from ...models.domain import ServiceConfiguration, ServicePlan

logger = logging.getLogger(__name__)

# Visits per month for each billing frequency.
FREQUENCY_MULTIPLIERS = {
    "weekly": 4,
    "biweekly": 2,
    "monthly": 1,
}


class PlanCatalog(Protocol):
    def get_service_plan(self, plan_id: str) -> Optional[ServicePlan]: ...


def frequency_multiplier(frequency: str) -> int:
    """Multiplier for a billing frequency; unrecognised values price as monthly."""
    multiplier = FREQUENCY_MULTIPLIERS.get(frequency)
    if multiplier is None:
        logger.debug(f"Unrecognised frequency '{frequency}', pricing with multiplier 1")
        return 1
    return multiplier


def monthly_price(config: ServiceConfiguration, catalog: PlanCatalog) -> float:
    """Price per month: base plan and every add-on, each scaled by visit frequency.

    Raises:
        NotFound: if the configuration references an unknown plan.
    """
    plan = catalog.get_service_plan(config.plan_id)
    if plan is None:
        raise NotFound("Service plan", config.plan_id)

    multiplier = frequency_multiplier(config.frequency)
    total = plan.base_price * multiplier
    for add_on in config.add_ons:
        total += add_on.price * multiplier
    return total
