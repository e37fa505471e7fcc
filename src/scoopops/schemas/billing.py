"""Client-portal subscription and billing request schemas."""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.domain import AddOn, ServiceConfiguration


class AddOnModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    price: float = Field(..., ge=0)


class ServiceConfigurationModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    plan_id: str
    frequency: str = Field(..., description="weekly, biweekly or monthly")
    add_ons: List[AddOnModel] = Field(default_factory=list)

    def to_domain(self) -> ServiceConfiguration:
        return ServiceConfiguration(
            plan_id=self.plan_id,
            frequency=self.frequency,
            add_ons=tuple(AddOn(id=item.id, price=item.price) for item in self.add_ons),
        )


class ServiceRequirementsRequest(BaseModel):
    service_configuration: ServiceConfigurationModel
    effective_date: Optional[date] = Field(default=None, description="Defaults to today.")


class PreviewChangesRequest(BaseModel):
    proposed_configuration: ServiceConfigurationModel
    effective_date: Optional[date] = Field(default=None, description="Defaults to today.")


class PauseRequest(BaseModel):
    pause_start_date: date
    pause_end_date: date
    reason: Optional[str] = None

    @model_validator(mode="after")
    def _check_order(self) -> "PauseRequest":
        if self.pause_end_date < self.pause_start_date:
            raise ValueError("pause_end_date must not be before pause_start_date")
        return self


class ResumeRequest(BaseModel):
    resume_date: Optional[date] = None


class CancelRequest(BaseModel):
    requested_end_date: Optional[date] = None
    reason: Optional[str] = None
    feedback: Optional[str] = None
