"""Domain models for subscriptions, jobs, technicians and routes."""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional


@dataclass(frozen=True, slots=True)
class AddOn:
    """Optional priced service attached to a base plan."""

    id: str
    price: float


@dataclass(frozen=True, slots=True)
class ServiceConfiguration:
    """Billed service level; replaced rather than mutated when a change is accepted."""

    plan_id: str
    frequency: str
    add_ons: tuple[AddOn, ...] = ()


@dataclass(slots=True)
class ServicePlan:
    id: str
    name: str
    base_price: float


@dataclass(slots=True)
class Subscription:
    """A client's recurring service subscription and its current billing period."""

    id: str
    client_id: str
    status: str
    service_configuration: ServiceConfiguration
    current_period_start: date
    current_period_end: date
    payment_provider: Optional[str] = None
    provider_subscription_id: Optional[str] = None
    provider_customer_id: Optional[str] = None


@dataclass(slots=True)
class Invoice:
    id: str
    subscription_id: str
    total_amount: float
    status: str


@dataclass(slots=True)
class PendingChange:
    """Accepted-but-unbilled proration awaiting the next invoice."""

    id: str
    subscription_id: str
    proration_amount: float
    proration_type: str


@dataclass(frozen=True, slots=True)
class LatLng:
    lat: float
    lng: float


@dataclass(slots=True)
class Technician:
    id: str
    name: str
    current_location: Optional[LatLng]


@dataclass(slots=True)
class Job:
    """A scheduled service visit at a client's property."""

    id: str
    client_id: str
    technician_id: Optional[str]
    job_type: str
    scheduled_date: date
    estimated_duration_minutes: Optional[int] = None
    location: Optional[LatLng] = None


@dataclass(slots=True)
class RouteRecord:
    """Persisted technician route for one day."""

    id: str
    technician_id: str
    route_date: date
    job_ids: list[str] = field(default_factory=list)
    total_distance_miles: int = 0
    estimated_duration_minutes: int = 0
    status: str = "planned"
