"""Collaborators injected into route handlers."""

from __future__ import annotations

from fastapi import HTTPException, status

from ..errors import UpstreamProviderError
from ..persistence.repository import SupabaseRepository
from ..services.payments.stripe_client import StripeClient
from ..services.routing.maps_client import GoogleMapsClient


def get_repository() -> SupabaseRepository:
    try:
        return SupabaseRepository()
    except UpstreamProviderError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


def get_maps_client() -> GoogleMapsClient:
    try:
        return GoogleMapsClient()
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


def get_payment_provider() -> StripeClient:
    try:
        return StripeClient()
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
