"""
Structured error taxonomy for the lifecycle and alert engine.

Every error carries a machine-readable ``kind``, a human-readable
message and the identifiers involved, so API handlers can render a
targeted message without parsing strings.
"""
from typing import Any, Optional


class EngineError(Exception):
    """Base class for all engine errors."""

    kind: str = "engine_error"

    def __init__(self, message: str, **ids: Any):
        super().__init__(message)
        self.message = message
        self.ids = {k: str(v) for k, v in ids.items() if v is not None}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API error payloads."""
        return {"kind": self.kind, "message": self.message, "ids": self.ids}

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(kind={self.kind!r}, message={self.message!r})>"


# =============================================================================
# Validation (recoverable, never retried automatically)
# =============================================================================

class ValidationError(EngineError):
    """Raised when a requested change violates a business rule."""
    kind = "validation_error"


class InvalidTransition(ValidationError):
    """Status change not present in the allowed-transition graph."""
    kind = "invalid_transition"


class InvalidSubStatus(ValidationError):
    """Unknown sub-status or a regression within the progression."""
    kind = "invalid_sub_status"


class MissingRequiredFields(ValidationError):
    """Shipment lacks fields required for the requested transition."""
    kind = "missing_required_fields"

    def __init__(self, missing_fields: list[str], **ids: Any):
        super().__init__(
            f"Missing required fields: {', '.join(missing_fields)}",
            **ids,
        )
        self.missing_fields = list(missing_fields)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["missing_fields"] = self.missing_fields
        return data


class InvalidExceptionStatus(ValidationError):
    """Exception status change that moves backwards or repeats a stamp."""
    kind = "invalid_exception_status"


class EscalationTargetRequired(ValidationError):
    """Escalating an exception without naming who it goes to."""
    kind = "escalation_target_required"


class InvalidAlertStatus(ValidationError):
    """Alert status change on an alert that is already closed."""
    kind = "invalid_alert_status"


# =============================================================================
# Lookup failures
# =============================================================================

class NotFoundError(EngineError):
    """Referenced shipment, trip, exception or alert does not exist."""
    kind = "not_found"

    def __init__(self, entity: str, entity_id: Any, message: Optional[str] = None):
        super().__init__(
            message or f"{entity} {entity_id} not found",
            **{f"{entity.lower()}_id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


# =============================================================================
# Store failures
# =============================================================================

class PersistenceError(EngineError):
    """
    Store write failed.

    The unit of work is rolled back as a whole; callers retry the entire
    operation (state change plus its history record).
    """
    kind = "persistence_error"
