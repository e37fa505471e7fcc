"""Client-portal subscription endpoints."""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status

from ...errors import ScoopOpsError
from ...persistence.repository import BillingRepository
from ...schemas.billing import (
    CancelRequest,
    PauseRequest,
    PreviewChangesRequest,
    ResumeRequest,
    ServiceRequirementsRequest,
)
from ...services.payments.stripe_client import PaymentProvider
from ...services.subscriptions import service
from ..deps import get_payment_provider, get_repository
from ..errors import to_http_exception

router = APIRouter(prefix="/clients/{client_id}", tags=["subscriptions"])


def _failed(action: str, exc: Exception) -> HTTPException:
    logging.exception(f"Error trying to {action}: {exc}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {str(exc)}",
    )


@router.get("/subscription", status_code=status.HTTP_200_OK)
def get_subscription(client_id: str, repository: BillingRepository = Depends(get_repository)) -> dict:
    try:
        overview = service.get_subscription_overview(client_id, repository=repository)
    except ScoopOpsError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        raise _failed("fetch subscription", exc) from exc
    return asdict(overview)


@router.put("/subscription/service-requirements", status_code=status.HTTP_200_OK)
async def update_service_requirements(
    client_id: str,
    payload: ServiceRequirementsRequest,
    repository: BillingRepository = Depends(get_repository),
    payments: PaymentProvider = Depends(get_payment_provider),
) -> dict:
    try:
        outcome = await service.update_service_requirements(
            client_id,
            payload.service_configuration.to_domain(),
            payload.effective_date or date.today(),
            repository=repository,
            payments=payments,
        )
    except ScoopOpsError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        raise _failed("update service requirements", exc) from exc
    return {"success": True, **asdict(outcome)}


@router.post("/subscription/preview-changes", status_code=status.HTTP_200_OK)
def preview_changes(
    client_id: str,
    payload: PreviewChangesRequest,
    repository: BillingRepository = Depends(get_repository),
) -> dict:
    try:
        outcome = service.preview_changes(
            client_id,
            payload.proposed_configuration.to_domain(),
            payload.effective_date or date.today(),
            repository=repository,
        )
    except ScoopOpsError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        raise _failed("preview billing changes", exc) from exc
    return asdict(outcome)


@router.put("/subscription/pause", status_code=status.HTTP_200_OK)
async def pause_subscription(
    client_id: str,
    payload: PauseRequest,
    repository: BillingRepository = Depends(get_repository),
    payments: PaymentProvider = Depends(get_payment_provider),
) -> dict:
    try:
        outcome = await service.pause_subscription(
            client_id,
            payload.pause_start_date,
            payload.pause_end_date,
            payload.reason,
            repository=repository,
            payments=payments,
        )
    except ScoopOpsError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        raise _failed("pause subscription", exc) from exc
    return {"success": True, **asdict(outcome)}


@router.put("/subscription/resume", status_code=status.HTTP_200_OK)
async def resume_subscription(
    client_id: str,
    payload: ResumeRequest,
    repository: BillingRepository = Depends(get_repository),
    payments: PaymentProvider = Depends(get_payment_provider),
) -> dict:
    try:
        outcome = await service.resume_subscription(
            client_id, payload.resume_date, repository=repository, payments=payments
        )
    except ScoopOpsError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        raise _failed("resume subscription", exc) from exc
    return {"success": True, **asdict(outcome)}


@router.put("/subscription/cancel", status_code=status.HTTP_200_OK)
def cancel_subscription(
    client_id: str,
    payload: CancelRequest,
    repository: BillingRepository = Depends(get_repository),
) -> dict:
    try:
        outcome = service.cancel_subscription(
            client_id,
            payload.requested_end_date,
            payload.reason,
            payload.feedback,
            repository=repository,
        )
    except ScoopOpsError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        raise _failed("cancel subscription", exc) from exc
    return {"success": True, **asdict(outcome)}


@router.get("/billing/next-amount", status_code=status.HTTP_200_OK)
def get_next_billing_amount(client_id: str, repository: BillingRepository = Depends(get_repository)) -> dict:
    try:
        amount = service.next_billing_for_client(client_id, repository=repository)
    except ScoopOpsError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        raise _failed("calculate next billing amount", exc) from exc
    return asdict(amount)
