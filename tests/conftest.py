from __future__ import annotations

import itertools
from dataclasses import replace
from datetime import date
from typing import Optional, Sequence

import pytest

from scoopops.models.domain import (
    AddOn,
    Invoice,
    Job,
    LatLng,
    PendingChange,
    RouteRecord,
    ServiceConfiguration,
    ServicePlan,
    Subscription,
    Technician,
)
from scoopops.services.payments.stripe_client import PaymentResult
from scoopops.services.routing.models import Directions


class FakeRepository:
    """In-memory stand-in for the Supabase repository."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.plans: dict[str, ServicePlan] = {}
        self.subscriptions: dict[str, Subscription] = {}
        self.services: list[tuple[str, Job, str]] = []
        self.invoices: list[Invoice] = []
        self.changes: dict[str, dict] = {}
        self.credits: list[tuple[str, float, str]] = []
        self.subscription_updates: list[tuple[str, dict]] = []
        self.pause_requests: list[dict] = []
        self.cancellation_requests: list[dict] = []
        self.technicians: dict[str, Technician] = {}
        self.jobs: dict[str, Job] = {}
        self.routes: dict[str, RouteRecord] = {}

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    # Seeding helpers

    def add_plan(self, plan_id: str, base_price: float) -> ServicePlan:
        plan = ServicePlan(id=plan_id, name=plan_id.title(), base_price=base_price)
        self.plans[plan_id] = plan
        return plan

    def add_subscription(self, subscription: Subscription) -> Subscription:
        self.subscriptions[subscription.id] = subscription
        return subscription

    def add_service(self, subscription_id: str, scheduled: date, status: str = "scheduled") -> Job:
        job = Job(
            id=self._next_id("svc"),
            client_id="client",
            technician_id=None,
            job_type="regular",
            scheduled_date=scheduled,
        )
        self.services.append((subscription_id, job, status))
        return job

    def add_job(self, job: Job) -> Job:
        self.jobs[job.id] = job
        return job

    # Billing

    def get_subscription(self, subscription_id: str) -> Optional[Subscription]:
        return self.subscriptions.get(subscription_id)

    def get_subscription_by_client(self, client_id: str) -> Optional[Subscription]:
        for subscription in self.subscriptions.values():
            if subscription.client_id == client_id and subscription.status != "cancelled":
                return subscription
        return None

    def get_service_plan(self, plan_id: str) -> Optional[ServicePlan]:
        return self.plans.get(plan_id)

    def get_unpaid_invoices(self, subscription_id: str) -> list[Invoice]:
        return [
            invoice
            for invoice in self.invoices
            if invoice.subscription_id == subscription_id and invoice.status in ("open", "overdue")
        ]

    def _services(self, subscription_id: str, start: date, end: date, status: str) -> list[Job]:
        return [
            job
            for owner, job, job_status in self.services
            if owner == subscription_id and job_status == status and start <= job.scheduled_date <= end
        ]

    def get_scheduled_services(self, subscription_id: str, start: date, end: date) -> list[Job]:
        return self._services(subscription_id, start, end, "scheduled")

    def get_completed_services(self, subscription_id: str, start: date, end: date) -> list[Job]:
        return self._services(subscription_id, start, end, "completed")

    def get_pending_changes(self, subscription_id: str) -> list[PendingChange]:
        return [
            entry["change"]
            for entry in self.changes.values()
            if entry["change"].subscription_id == subscription_id and not entry["billed"]
        ]

    def get_available_credits(self, subscription_id: str) -> float:
        return sum(amount for owner, amount, _ in self.credits if owner == subscription_id)

    def create_pending_change(
        self,
        subscription_id: str,
        *,
        old_configuration: ServiceConfiguration,
        new_configuration: ServiceConfiguration,
        effective_date: date,
        proration_amount: float,
        proration_type: str,
    ) -> PendingChange:
        change = PendingChange(
            id=self._next_id("change"),
            subscription_id=subscription_id,
            proration_amount=proration_amount,
            proration_type=proration_type,
        )
        self.changes[change.id] = {
            "change": change,
            "new_configuration": new_configuration,
            "effective_date": effective_date,
            "billed": False,
        }
        return change

    def apply_pending_change(self, change_id: str) -> None:
        entry = self.changes[change_id]
        subscription_id = entry["change"].subscription_id
        self.subscriptions[subscription_id] = replace(
            self.subscriptions[subscription_id], service_configuration=entry["new_configuration"]
        )
        entry["billed"] = True

    def add_credit(self, subscription_id: str, amount: float, reason: str) -> None:
        self.credits.append((subscription_id, amount, reason))

    def create_invoice(self, subscription_id: str, amount: float, description: str, invoice_type: str) -> Invoice:
        invoice = Invoice(id=self._next_id("inv"), subscription_id=subscription_id, total_amount=amount, status="open")
        self.invoices.append(invoice)
        return invoice

    def update_subscription(self, subscription_id: str, **fields) -> None:
        self.subscription_updates.append((subscription_id, fields))
        if "status" in fields:
            self.subscriptions[subscription_id] = replace(
                self.subscriptions[subscription_id], status=fields["status"]
            )

    def create_pause_request(self, subscription_id, pause_start, pause_end, reason) -> dict:
        request = {
            "id": self._next_id("pause"),
            "subscription_id": subscription_id,
            "pause_start_date": pause_start,
            "pause_end_date": pause_end,
            "reason": reason,
        }
        self.pause_requests.append(request)
        return request

    def create_cancellation_request(self, subscription_id, requested_end_date, reason, feedback) -> dict:
        request = {
            "id": self._next_id("cancel"),
            "subscription_id": subscription_id,
            "requested_end_date": requested_end_date,
            "reason": reason,
            "feedback": feedback,
        }
        self.cancellation_requests.append(request)
        return request

    # Routing

    def get_technician(self, technician_id: str) -> Optional[Technician]:
        return self.technicians.get(technician_id)

    def get_active_technician_ids(self) -> list[str]:
        return list(self.technicians)

    def get_jobs_for_technician(self, technician_id: str, route_date: date) -> list[Job]:
        return [
            job
            for job in self.jobs.values()
            if job.technician_id == technician_id and job.scheduled_date == route_date
        ]

    def get_jobs_by_ids(self, job_ids: Sequence[str]) -> list[Job]:
        return [self.jobs[job_id] for job_id in job_ids if job_id in self.jobs]

    def get_route(self, route_id: str) -> Optional[RouteRecord]:
        return self.routes.get(route_id)

    def get_route_for_technician(self, technician_id: str, route_date: date) -> Optional[RouteRecord]:
        for record in reversed(list(self.routes.values())):
            if record.technician_id == technician_id and record.route_date == route_date:
                return record
        return None

    def save_route(self, technician_id, route_date, job_ids, total_distance_miles, estimated_duration_minutes):
        record = RouteRecord(
            id=self._next_id("route"),
            technician_id=technician_id,
            route_date=route_date,
            job_ids=list(job_ids),
            total_distance_miles=total_distance_miles,
            estimated_duration_minutes=estimated_duration_minutes,
        )
        self.routes[record.id] = record
        return record

    def update_route(self, route_id, job_ids, total_distance_miles, estimated_duration_minutes):
        record = self.routes[route_id]
        record.job_ids = list(job_ids)
        record.total_distance_miles = total_distance_miles
        record.estimated_duration_minutes = estimated_duration_minutes
        return record


class FakeMapsClient:
    """Distance matrix from a callable over coordinates; records every request."""

    def __init__(self, distance=None, duration=None, statuses=None, fail_with: Exception | None = None) -> None:
        self.distance = distance or (lambda o, d: 0 if o == d else 1000)
        self.duration = duration or (lambda o, d: 0 if o == d else 120)
        self.statuses = statuses or {}
        self.fail_with = fail_with
        self.matrix_calls: list[tuple[list[LatLng], list[LatLng]]] = []
        self.direction_calls: list[tuple[LatLng, LatLng]] = []

    async def distance_matrix(self, origins, destinations):
        self.matrix_calls.append((list(origins), list(destinations)))
        if self.fail_with is not None:
            raise self.fail_with
        rows = []
        for origin in origins:
            elements = []
            for destination in destinations:
                status = self.statuses.get((origin, destination), "OK")
                if status != "OK":
                    elements.append({"status": status})
                    continue
                elements.append(
                    {
                        "status": "OK",
                        "distance": {"value": self.distance(origin, destination)},
                        "duration": {"value": self.duration(origin, destination)},
                    }
                )
            rows.append(elements)
        return rows

    async def directions(self, origin, destination):
        self.direction_calls.append((origin, destination))
        return Directions(
            distance_meters=self.distance(origin, destination),
            duration_seconds=self.duration(origin, destination),
            steps=[{"html_instructions": "Head north"}],
            polyline="abc123",
        )


class FakePaymentProvider:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    async def charge(self, amount, customer_ref, description):
        self.calls.append(("charge", amount, customer_ref, description))
        return PaymentResult(id="pi_test", status="succeeded")

    async def create_subscription(self, customer_ref, price_ref):
        self.calls.append(("create_subscription", customer_ref, price_ref))
        return PaymentResult(id="sub_test", status="incomplete")

    async def pause(self, subscription_ref):
        self.calls.append(("pause", subscription_ref))
        return PaymentResult(id=subscription_ref, status="active")

    async def resume(self, subscription_ref):
        self.calls.append(("resume", subscription_ref))
        return PaymentResult(id=subscription_ref, status="active")


WEEKLY = ServiceConfiguration(plan_id="basic", frequency="weekly")
BIWEEKLY = ServiceConfiguration(plan_id="basic", frequency="biweekly")


@pytest.fixture
def repository() -> FakeRepository:
    repo = FakeRepository()
    repo.add_plan("basic", 35.0)
    repo.add_plan("premium", 50.0)
    repo.add_subscription(
        Subscription(
            id="sub-1",
            client_id="client-1",
            status="active",
            service_configuration=WEEKLY,
            current_period_start=date(2024, 6, 1),
            current_period_end=date(2024, 7, 1),
            payment_provider="stripe",
            provider_subscription_id="sub_stripe_1",
            provider_customer_id="cus_1",
        )
    )
    return repo


@pytest.fixture
def payments() -> FakePaymentProvider:
    return FakePaymentProvider()


@pytest.fixture
def maps_client() -> FakeMapsClient:
    return FakeMapsClient()


def deodorizer(price: float = 5.0) -> AddOn:
    return AddOn(id="deodorizer", price=price)
