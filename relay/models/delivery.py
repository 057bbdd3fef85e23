"""
Delivery Value Types

Outcomes passed between the transport, the forwarder, the sweeper and the
ingestion service.
"""
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Optional
from pydantic import BaseModel


class AttemptOutcome(StrEnum):
    """Classification of a single transport attempt."""
    SUCCESS = "success"
    RETRYABLE = "retryable"          # may succeed if tried again later
    NON_RETRYABLE = "non_retryable"  # retrying cannot fix it


class FailureReason(StrEnum):
    """Why a delivery cycle ended without success."""
    TRANSPORT_TERMINAL = "transport_terminal"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"


@dataclass(frozen=True)
class TransportOutcome:
    """Result of one delivery attempt to the downstream consumer."""
    kind: AttemptOutcome
    detail: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def success(cls, status_code: Optional[int] = None) -> "TransportOutcome":
        return cls(AttemptOutcome.SUCCESS, status_code=status_code)

    @classmethod
    def retryable(cls, detail: str, status_code: Optional[int] = None) -> "TransportOutcome":
        return cls(AttemptOutcome.RETRYABLE, detail, status_code)

    @classmethod
    def non_retryable(cls, detail: str, status_code: Optional[int] = None) -> "TransportOutcome":
        return cls(AttemptOutcome.NON_RETRYABLE, detail, status_code)

    @property
    def is_success(self) -> bool:
        return self.kind == AttemptOutcome.SUCCESS


@dataclass
class DeliveryResult:
    """Outcome of one delivery cycle (one Forwarder invocation)."""
    message_id: str
    delivered: bool
    attempts: int
    reason: Optional[FailureReason] = None
    error: Optional[str] = None
    errors: list[str] = field(default_factory=list)
    duration_ms: float = 0.0


class SweepReport(BaseModel):
    """
    Summary of one retry sweep iteration.

    Attributes:
        fetched: Retryable messages returned by the store
        skipped: Messages excluded by the hard attempt ceiling
        dispatched: Messages handed to the forwarder
        succeeded: Deliveries that ended in `sent`
        failed: Deliveries that ended in `failed`
        persist_errors: Cycles whose terminal status could not be stored
    """
    fetched: int = 0
    skipped: int = 0
    dispatched: int = 0
    succeeded: int = 0
    failed: int = 0
    persist_errors: int = 0


class StatusCounts(BaseModel):
    """Per-status message totals for the stats endpoint."""
    pending: int = 0
    sent: int = 0
    failed: int = 0


class SubmitReceipt(BaseModel):
    """Acknowledgement returned to the ingestion caller."""
    id: str
    status: str = "queued"
