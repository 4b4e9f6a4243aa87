"""
Typed metadata bags for history, exception and alert records.

Each known shape is a schema with its own fields; all of them allow extra
keys so callers can still attach free-form context. ``MetadataBag`` itself
is the generic escape hatch. Bags are stored as JSONB via ``dump()``.
"""
from datetime import datetime
from typing import Any, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class MetadataBag(BaseModel):
    """Open key/value map; base of every typed variant."""

    model_config = ConfigDict(extra="allow")

    def dump(self) -> dict[str, Any]:
        """JSON-safe dict for a JSONB column."""
        return self.model_dump(mode="json", exclude_none=True)


# =============================================================================
# Alert variants
# =============================================================================

class DeviationMetadata(MetadataBag):
    distance_meters: float
    distance_display: Optional[str] = None


class StoppageMetadata(MetadataBag):
    stopped_since: datetime
    stopped_minutes: float


class TrackingLostMetadata(MetadataBag):
    last_ping_at: Optional[datetime] = None
    minutes_since_ping: Optional[int] = None
    missed_intervals: Optional[int] = None


class DelayMetadata(MetadataBag):
    regime: Literal["past_due", "percentage"]
    baseline_eta: datetime
    current_eta: datetime
    delay_minutes: int
    delay_percent: Optional[float] = None


class ConsentMetadata(MetadataBag):
    driver_name: Optional[str] = None
    driver_mobile: Optional[str] = None


class IdleMetadata(MetadataBag):
    start_time: datetime
    running_minutes: int


class AutoResolution(MetadataBag):
    """Merged into an alert's metadata when a detector clears it."""
    auto_resolved: bool = True
    reason: str


class OperatorAction(MetadataBag):
    """Merged into an alert's metadata on a manual status change."""
    resolution_notes: str
    action_taken_at: datetime


class Reconciliation(MetadataBag):
    """Merged into a duplicate alert dismissed by the reconciliation sweep."""
    reconciled: bool = True
    duplicate_of: UUID
    reason: str = "Duplicate active alert"


# =============================================================================
# Exception variants
# =============================================================================

class DuplicateMappingMetadata(MetadataBag):
    attempted_trip_id: UUID
    existing_trip_id: UUID
    existing_trip_code: Optional[str] = None


class VehicleNotArrivedMetadata(MetadataBag):
    planned_time: datetime
    overdue_minutes: int


class DelayExceptionMetadata(MetadataBag):
    delay_percentage: float
    threshold_percent: float


class CapacityExceededMetadata(MetadataBag):
    trip_id: UUID
    weight_utilization: float
    volume_utilization: float
    messages: list[str]


def merge_metadata(
    existing: Optional[dict[str, Any]],
    *updates: Union[MetadataBag, dict[str, Any], None],
) -> dict[str, Any]:
    """Return a new map with ``updates`` layered over ``existing``."""
    merged = dict(existing or {})
    for update in updates:
        if update is None:
            continue
        merged.update(update.dump() if isinstance(update, MetadataBag) else update)
    return merged
