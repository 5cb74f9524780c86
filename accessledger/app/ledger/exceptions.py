"""Errors raised by the purchase ledger and its collaborators."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException, status


@dataclass
class PurchaseError(Exception):
    """Domain error carrying a machine readable code for API callers."""

    code: str
    message: str
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        base_detail: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.detail:
            base_detail.update(self.detail)
        object.__setattr__(self, "_payload", base_detail)
        super().__init__(self.message)

    @property
    def payload(self) -> Mapping[str, Any]:
        """Serialized representation suitable for JSON responses."""

        return self._payload

    def to_http_exception(self) -> HTTPException:
        """Convert the domain error into a FastAPI HTTPException."""

        return HTTPException(status_code=self.status_code, detail=dict(self.payload))


class PersistenceFailure(PurchaseError):
    """The storage layer backing the ledger is unavailable."""

    def __init__(self, message: str = "Purchase storage is unavailable", *, detail: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(
            code="persistence_failure",
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
        )


class DuplicateWrite(PurchaseError):
    """A write collided with an existing record's idempotency key."""

    def __init__(self, message: str = "Purchase already recorded", *, detail: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(
            code="duplicate_write",
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )


__all__ = ["DuplicateWrite", "PersistenceFailure", "PurchaseError"]
