"""Error taxonomy shared by the billing and routing engines."""

from __future__ import annotations

from typing import Sequence


class ScoopOpsError(Exception):
    """Base class for errors surfaced to API callers."""


class NotFound(ScoopOpsError, LookupError):
    """A subscription, plan, route, technician or invoice does not exist."""

    def __init__(self, entity: str, identifier: object) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} '{identifier}' not found")


class InvalidBillingCycle(ScoopOpsError, ValueError):
    """Billing cycle has zero or negative length."""


class InvalidRequest(ScoopOpsError, ValueError):
    """Request is well-formed but cannot be applied to the current state."""


class IncompleteDistanceData(ScoopOpsError):
    """Mapping provider returned a matrix with unusable cells."""

    def __init__(self, failed_cells: Sequence[tuple[int, int, str]]) -> None:
        self.failed_cells = list(failed_cells)
        preview = ", ".join(f"[{o}->{d}: {status}]" for o, d, status in self.failed_cells[:5])
        more = f" (+{len(self.failed_cells) - 5} more)" if len(self.failed_cells) > 5 else ""
        super().__init__(
            f"Distance matrix is incomplete: {len(self.failed_cells)} cell(s) unusable {preview}{more}"
        )


class UpstreamProviderError(ScoopOpsError):
    """A payment or mapping provider call failed."""

    def __init__(self, provider: str, message: str, *, status_code: int | None = None) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider} error: {message}")
