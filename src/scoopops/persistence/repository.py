"""Data-access layer for subscriptions, jobs, technicians and routes.

The engines only depend on the two protocols below. ``SupabaseRepository`` is
the production implementation; tests supply in-memory fakes.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Optional, Protocol, Sequence

from ..db.supabase import get_supabase_client
from ..errors import NotFound, UpstreamProviderError
from ..models.domain import (
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

logger = logging.getLogger(__name__)


class BillingRepository(Protocol):
    def get_subscription(self, subscription_id: str) -> Optional[Subscription]: ...

    def get_subscription_by_client(self, client_id: str) -> Optional[Subscription]: ...

    def get_service_plan(self, plan_id: str) -> Optional[ServicePlan]: ...

    def get_unpaid_invoices(self, subscription_id: str) -> list[Invoice]: ...

    def get_scheduled_services(self, subscription_id: str, start: date, end: date) -> list[Job]: ...

    def get_completed_services(self, subscription_id: str, start: date, end: date) -> list[Job]: ...

    def get_pending_changes(self, subscription_id: str) -> list[PendingChange]: ...

    def get_available_credits(self, subscription_id: str) -> float: ...

    def create_pending_change(
        self,
        subscription_id: str,
        *,
        old_configuration: ServiceConfiguration,
        new_configuration: ServiceConfiguration,
        effective_date: date,
        proration_amount: float,
        proration_type: str,
    ) -> PendingChange: ...

    def apply_pending_change(self, change_id: str) -> None: ...

    def add_credit(self, subscription_id: str, amount: float, reason: str) -> None: ...

    def create_invoice(self, subscription_id: str, amount: float, description: str, invoice_type: str) -> Invoice: ...

    def update_subscription(self, subscription_id: str, **fields: Any) -> None: ...

    def create_pause_request(
        self, subscription_id: str, pause_start: date, pause_end: date, reason: Optional[str]
    ) -> dict: ...

    def create_cancellation_request(
        self, subscription_id: str, requested_end_date: date, reason: Optional[str], feedback: Optional[str]
    ) -> dict: ...


class RoutingRepository(Protocol):
    def get_technician(self, technician_id: str) -> Optional[Technician]: ...

    def get_active_technician_ids(self) -> list[str]: ...

    def get_jobs_for_technician(self, technician_id: str, route_date: date) -> list[Job]: ...

    def get_jobs_by_ids(self, job_ids: Sequence[str]) -> list[Job]: ...

    def get_route(self, route_id: str) -> Optional[RouteRecord]: ...

    def get_route_for_technician(self, technician_id: str, route_date: date) -> Optional[RouteRecord]: ...

    def save_route(
        self,
        technician_id: str,
        route_date: date,
        job_ids: Sequence[str],
        total_distance_miles: int,
        estimated_duration_minutes: int,
    ) -> RouteRecord: ...

    def update_route(
        self,
        route_id: str,
        job_ids: Sequence[str],
        total_distance_miles: int,
        estimated_duration_minutes: int,
    ) -> RouteRecord: ...


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()


def configuration_from_row(data: dict) -> ServiceConfiguration:
    return ServiceConfiguration(
        plan_id=str(data["plan_id"]),
        frequency=str(data["frequency"]),
        add_ons=tuple(AddOn(id=str(item["id"]), price=float(item["price"])) for item in data.get("add_ons") or []),
    )


def configuration_to_row(config: ServiceConfiguration) -> dict:
    return {
        "plan_id": config.plan_id,
        "frequency": config.frequency,
        "add_ons": [{"id": add_on.id, "price": add_on.price} for add_on in config.add_ons],
    }


def _location_from_row(row: dict | None) -> Optional[LatLng]:
    if not row or row.get("latitude") is None or row.get("longitude") is None:
        return None
    return LatLng(lat=float(row["latitude"]), lng=float(row["longitude"]))


def _subscription_from_row(row: dict) -> Subscription:
    return Subscription(
        id=str(row["id"]),
        client_id=str(row["client_id"]),
        status=row.get("status") or "active",
        service_configuration=configuration_from_row(row["service_configuration"]),
        current_period_start=_parse_date(row["current_period_start"]),
        current_period_end=_parse_date(row["current_period_end"]),
        payment_provider=row.get("payment_provider"),
        provider_subscription_id=row.get("provider_subscription_id"),
        provider_customer_id=row.get("provider_customer_id"),
    )


def _job_from_row(row: dict) -> Job:
    return Job(
        id=str(row["id"]),
        client_id=str(row["client_id"]),
        technician_id=row.get("technician_id"),
        job_type=row.get("job_type") or "regular",
        scheduled_date=_parse_date(row["scheduled_date"]),
        estimated_duration_minutes=row.get("estimated_duration"),
        location=_location_from_row(row.get("clients")),
    )


def _route_from_row(row: dict) -> RouteRecord:
    return RouteRecord(
        id=str(row["id"]),
        technician_id=str(row["field_tech_id"]),
        route_date=_parse_date(row["route_date"]),
        job_ids=[str(job_id) for job_id in row.get("optimized_order") or []],
        total_distance_miles=int(row.get("total_distance") or 0),
        estimated_duration_minutes=int(row.get("estimated_duration") or 0),
        status=row.get("status") or "planned",
    )


class SupabaseRepository:
    """Repository backed by Supabase tables."""

    _JOB_COLUMNS = "*, clients(latitude, longitude)"

    def __init__(self, client: Any | None = None) -> None:
        self.client = client or get_supabase_client()
        if self.client is None:
            raise UpstreamProviderError(
                "supabase",
                "Supabase not configured. Set SCOOP_SUPABASE_URL and SCOOP_SUPABASE_KEY environment variables.",
            )

    def _execute(self, query: Any, action: str) -> list[dict]:
        try:
            response = query.execute()
        except Exception as exc:
            logger.error(f"Supabase {action} failed: {exc}")
            raise UpstreamProviderError("supabase", f"{action} failed: {exc}") from exc
        return response.data or []

    def _first(self, query: Any, action: str) -> Optional[dict]:
        rows = self._execute(query.limit(1), action)
        return rows[0] if rows else None

    # Billing

    def get_subscription(self, subscription_id: str) -> Optional[Subscription]:
        row = self._first(
            self.client.table("subscriptions").select("*").eq("id", subscription_id),
            "load subscription",
        )
        return _subscription_from_row(row) if row else None

    def get_subscription_by_client(self, client_id: str) -> Optional[Subscription]:
        row = self._first(
            self.client.table("subscriptions")
            .select("*")
            .eq("client_id", client_id)
            .neq("status", "cancelled")
            .order("created_at", desc=True),
            "load client subscription",
        )
        return _subscription_from_row(row) if row else None

    def get_service_plan(self, plan_id: str) -> Optional[ServicePlan]:
        row = self._first(self.client.table("service_plans").select("*").eq("id", plan_id), "load service plan")
        if not row:
            return None
        return ServicePlan(id=str(row["id"]), name=row.get("name") or "", base_price=float(row["base_price"]))

    def get_unpaid_invoices(self, subscription_id: str) -> list[Invoice]:
        rows = self._execute(
            self.client.table("invoices")
            .select("*")
            .eq("subscription_id", subscription_id)
            .in_("status", ["open", "overdue"]),
            "load unpaid invoices",
        )
        return [
            Invoice(
                id=str(row["id"]),
                subscription_id=str(row["subscription_id"]),
                total_amount=float(row.get("total_amount") or 0.0),
                status=row["status"],
            )
            for row in rows
        ]

    def _services_between(self, subscription_id: str, start: date, end: date, status: str) -> list[Job]:
        rows = self._execute(
            self.client.table("jobs")
            .select(self._JOB_COLUMNS)
            .eq("subscription_id", subscription_id)
            .eq("status", status)
            .gte("scheduled_date", start.isoformat())
            .lte("scheduled_date", end.isoformat()),
            f"load {status} services",
        )
        return [_job_from_row(row) for row in rows]

    def get_scheduled_services(self, subscription_id: str, start: date, end: date) -> list[Job]:
        return self._services_between(subscription_id, start, end, "scheduled")

    def get_completed_services(self, subscription_id: str, start: date, end: date) -> list[Job]:
        return self._services_between(subscription_id, start, end, "completed")

    def get_pending_changes(self, subscription_id: str) -> list[PendingChange]:
        rows = self._execute(
            self.client.table("subscription_changes")
            .select("*")
            .eq("subscription_id", subscription_id)
            .eq("billed", False)
            .in_("status", ["pending_confirmation", "applied"]),
            "load pending changes",
        )
        return [
            PendingChange(
                id=str(row["id"]),
                subscription_id=str(row["subscription_id"]),
                proration_amount=float(row.get("proration_amount") or 0.0),
                proration_type=row["proration_type"],
            )
            for row in rows
        ]

    def get_available_credits(self, subscription_id: str) -> float:
        rows = self._execute(
            self.client.table("subscription_credits")
            .select("amount")
            .eq("subscription_id", subscription_id)
            .eq("consumed", False),
            "load available credits",
        )
        return sum(float(row.get("amount") or 0.0) for row in rows)

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
        rows = self._execute(
            self.client.table("subscription_changes").insert(
                {
                    "subscription_id": subscription_id,
                    "change_type": "service_modification",
                    "old_configuration": configuration_to_row(old_configuration),
                    "new_configuration": configuration_to_row(new_configuration),
                    "effective_date": effective_date.isoformat(),
                    "proration_amount": proration_amount,
                    "proration_type": proration_type,
                    "status": "pending_confirmation",
                    "billed": False,
                }
            ),
            "create pending change",
        )
        row = rows[0]
        return PendingChange(
            id=str(row["id"]),
            subscription_id=subscription_id,
            proration_amount=proration_amount,
            proration_type=proration_type,
        )

    def apply_pending_change(self, change_id: str) -> None:
        rows = self._execute(
            self.client.table("subscription_changes").select("*").eq("id", change_id).limit(1),
            "load pending change",
        )
        if not rows:
            return
        change = rows[0]
        self._execute(
            self.client.table("subscriptions")
            .update({"service_configuration": change["new_configuration"]})
            .eq("id", change["subscription_id"]),
            "apply configuration",
        )
        self._execute(
            self.client.table("subscription_changes")
            .update({"status": "applied", "billed": True})
            .eq("id", change_id),
            "mark change applied",
        )

    def add_credit(self, subscription_id: str, amount: float, reason: str) -> None:
        self._execute(
            self.client.table("subscription_credits").insert(
                {"subscription_id": subscription_id, "amount": amount, "reason": reason, "consumed": False}
            ),
            "add credit",
        )

    def create_invoice(self, subscription_id: str, amount: float, description: str, invoice_type: str) -> Invoice:
        today = date.today().isoformat()
        rows = self._execute(
            self.client.table("invoices").insert(
                {
                    "subscription_id": subscription_id,
                    "amount": amount,
                    "tax_amount": 0,
                    "total_amount": amount,
                    "invoice_date": today,
                    "due_date": today,
                    "type": invoice_type,
                    "description": description,
                    "status": "open",
                }
            ),
            "create invoice",
        )
        row = rows[0]
        return Invoice(id=str(row["id"]), subscription_id=subscription_id, total_amount=amount, status="open")

    def update_subscription(self, subscription_id: str, **fields: Any) -> None:
        payload = {
            key: value.isoformat() if isinstance(value, (date, datetime)) else value
            for key, value in fields.items()
        }
        self._execute(
            self.client.table("subscriptions").update(payload).eq("id", subscription_id),
            "update subscription",
        )

    def create_pause_request(
        self, subscription_id: str, pause_start: date, pause_end: date, reason: Optional[str]
    ) -> dict:
        rows = self._execute(
            self.client.table("pause_requests").insert(
                {
                    "subscription_id": subscription_id,
                    "pause_start_date": pause_start.isoformat(),
                    "pause_end_date": pause_end.isoformat(),
                    "reason": reason,
                    "status": "approved",
                }
            ),
            "create pause request",
        )
        return rows[0]

    def create_cancellation_request(
        self, subscription_id: str, requested_end_date: date, reason: Optional[str], feedback: Optional[str]
    ) -> dict:
        rows = self._execute(
            self.client.table("cancellation_requests").insert(
                {
                    "subscription_id": subscription_id,
                    "requested_end_date": requested_end_date.isoformat(),
                    "reason": reason,
                    "feedback": feedback,
                    "status": "pending",
                    "notice_date": date.today().isoformat(),
                }
            ),
            "create cancellation request",
        )
        return rows[0]

    # Routing

    def get_technician(self, technician_id: str) -> Optional[Technician]:
        row = self._first(
            self.client.table("field_technicians").select("*").eq("id", technician_id),
            "load technician",
        )
        if not row:
            return None
        return Technician(
            id=str(row["id"]),
            name=row.get("name") or "",
            current_location=_location_from_row(
                {"latitude": row.get("current_latitude"), "longitude": row.get("current_longitude")}
            ),
        )

    def get_active_technician_ids(self) -> list[str]:
        rows = self._execute(
            self.client.table("field_technicians").select("id").eq("is_active", True),
            "load active technicians",
        )
        return [str(row["id"]) for row in rows]

    def get_jobs_for_technician(self, technician_id: str, route_date: date) -> list[Job]:
        rows = self._execute(
            self.client.table("jobs")
            .select(self._JOB_COLUMNS)
            .eq("technician_id", technician_id)
            .eq("scheduled_date", route_date.isoformat())
            .order("id"),
            "load technician jobs",
        )
        return [_job_from_row(row) for row in rows]

    def get_jobs_by_ids(self, job_ids: Sequence[str]) -> list[Job]:
        if not job_ids:
            return []
        rows = self._execute(
            self.client.table("jobs").select(self._JOB_COLUMNS).in_("id", list(job_ids)),
            "load jobs",
        )
        by_id = {str(row["id"]): _job_from_row(row) for row in rows}
        return [by_id[job_id] for job_id in job_ids if job_id in by_id]

    def get_route(self, route_id: str) -> Optional[RouteRecord]:
        row = self._first(self.client.table("routes").select("*").eq("id", route_id), "load route")
        return _route_from_row(row) if row else None

    def get_route_for_technician(self, technician_id: str, route_date: date) -> Optional[RouteRecord]:
        row = self._first(
            self.client.table("routes")
            .select("*")
            .eq("field_tech_id", technician_id)
            .eq("route_date", route_date.isoformat())
            .order("updated_at", desc=True),
            "load technician route",
        )
        return _route_from_row(row) if row else None

    def save_route(
        self,
        technician_id: str,
        route_date: date,
        job_ids: Sequence[str],
        total_distance_miles: int,
        estimated_duration_minutes: int,
    ) -> RouteRecord:
        rows = self._execute(
            self.client.table("routes").insert(
                {
                    "field_tech_id": technician_id,
                    "route_date": route_date.isoformat(),
                    "optimized_order": list(job_ids),
                    "total_distance": total_distance_miles,
                    "estimated_duration": estimated_duration_minutes,
                    "status": "planned",
                }
            ),
            "save route",
        )
        return _route_from_row(rows[0])

    def update_route(
        self,
        route_id: str,
        job_ids: Sequence[str],
        total_distance_miles: int,
        estimated_duration_minutes: int,
    ) -> RouteRecord:
        rows = self._execute(
            self.client.table("routes")
            .update(
                {
                    "optimized_order": list(job_ids),
                    "total_distance": total_distance_miles,
                    "estimated_duration": estimated_duration_minutes,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                }
            )
            .eq("id", route_id),
            "update route",
        )
        if not rows:
            raise NotFound("Route", route_id)
        return _route_from_row(rows[0])
