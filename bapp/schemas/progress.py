"""
Pydantic v2 schemas for contract signatures and per-bucket progress records.

A ``ProgressRecord`` belongs to exactly one bucket of the contract's current
partition for a given year. Its percentage is normally derived from the
signature and upload state (see ``bapp.services.progress_service``); only a
period migration may store a percentage that differs from the derivation.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from bapp.schemas.period import Bucket


class YearlyStatus(str, Enum):
    COMPLETED = "completed"
    IN_PROGRESS = "in_progress"
    NOT_STARTED = "not_started"


class BatchOperation(str, Enum):
    """Bulk edits applied to a selection of buckets."""

    COMPLETE_SIGNATURES = "complete-signatures"
    COMPLETE_ALL = "complete-all"


# ---------------------------------------------------------------------------
# Signatures
# ---------------------------------------------------------------------------


class Signature(BaseModel):
    """A person whose signature is collected for every bucket of a contract.

    Attributes:
        id: Stable signature identifier.
        name: Signatory name.
        role: Signatory role or position.
        order: Display position; signatures are kept sorted by it.
    """

    id: str = Field(..., min_length=1)
    name: str = ""
    role: str = ""
    order: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=True)


class SignatureStatus(BaseModel):
    """Completion state of one signature within one progress record."""

    signature_id: str = Field(..., min_length=1)
    completed: bool = False
    completed_at: datetime | None = None

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Progress record
# ---------------------------------------------------------------------------


class ProgressRecord(BaseModel):
    """Completion record of one bucket for a contract and year.

    Attributes:
        bucket: The bucket of the current partition this record belongs to.
        percentage: Completion percentage, 0–100.
        notes: Free-text notes for the bucket.
        upload_completed: Whether the document upload is done.
        upload_link: Link to the uploaded document.
        signature_statuses: One entry per contract signature, in signature order.
    """

    bucket: Bucket
    percentage: int = Field(default=0, ge=0, le=100)
    notes: str | None = None
    upload_completed: bool = False
    upload_link: str | None = None
    signature_statuses: list[SignatureStatus] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def completed_signatures(self) -> int:
        return sum(1 for status in self.signature_statuses if status.completed)

    @property
    def signature_ids(self) -> list[str]:
        return [status.signature_id for status in self.signature_statuses]

    @property
    def has_notes(self) -> bool:
        return bool(self.notes and self.notes.strip())

    @property
    def is_trivial(self) -> bool:
        """True when the record carries neither progress nor notes."""
        return self.percentage == 0 and not self.has_notes

    @property
    def derived_percentage(self) -> int:
        total_items = len(self.signature_statuses) + 1
        completed_items = self.completed_signatures + (1 if self.upload_completed else 0)
        return round_half_up(100 * completed_items / total_items)

    @property
    def percentage_overridden(self) -> bool:
        """True when the stored percentage was set independently of the signature state."""
        return self.percentage != self.derived_percentage


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (``Math.round`` semantics)."""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


# ---------------------------------------------------------------------------
# Response shapes
# ---------------------------------------------------------------------------


class ProgressOption(BaseModel):
    """An achievable percentage for a contract with a given number of signatures.

    Attributes:
        value: Percentage value.
        completed_items: Items done (signatures + upload) that produce ``value``.
        total_items: Signatures + 1 (upload).
        label: Display label, e.g. ``"50% (1/2 done)"``.
    """

    value: int = Field(..., ge=0, le=100)
    completed_items: int = Field(..., ge=0)
    total_items: int = Field(..., ge=1)
    label: str
