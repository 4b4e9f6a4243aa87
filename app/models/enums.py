"""
Enum type definitions for TCT.

These enums map directly to PostgreSQL ENUM types created in the baseline
migration. Lifecycle rules (transition graphs, sub-status progressions,
timestamp fields, default severities) live in immutable lookup tables
next to the enum they are keyed by, and are exposed as enum properties.
"""
from enum import Enum
from types import MappingProxyType
from typing import Optional


class Severity(str, Enum):
    """Severity shared by shipment exceptions and trip alerts."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# =============================================================================
# Shipment lifecycle
# =============================================================================

class ShipmentStatus(str, Enum):
    """Shipment main status, in lifecycle order."""
    CREATED = "created"                    # Booked, not yet confirmed
    CONFIRMED = "confirmed"                # Mandatory fields verified
    MAPPED = "mapped"                      # Attached to a trip
    IN_PICKUP = "in_pickup"                # Vehicle at pickup, loading
    IN_TRANSIT = "in_transit"              # On the road
    OUT_FOR_DELIVERY = "out_for_delivery"  # Final mile
    DELIVERED = "delivered"                # Handed over, POD/billing pending
    NDR = "ndr"                            # Non-delivery report
    RETURNED = "returned"                  # Returned to origin (terminal)
    SUCCESS = "success"                    # Closed out (terminal)

    @property
    def allowed_transitions(self) -> frozenset["ShipmentStatus"]:
        """Statuses reachable from this one in a single step."""
        return SHIPMENT_TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not SHIPMENT_TRANSITIONS[self]

    @property
    def sub_statuses(self) -> tuple["ShipmentSubStatus", ...]:
        """Ordered sub-status progression (empty if none is defined)."""
        return SUB_STATUS_PROGRESSIONS.get(self, ())

    @property
    def timestamp_field(self) -> Optional[str]:
        """Shipment column stamped when this status is entered."""
        return STATUS_TIMESTAMP_FIELDS.get(self)

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


class ShipmentSubStatus(str, Enum):
    """Finer-grained phase within a main status."""
    # in_pickup
    VEHICLE_PLACED = "vehicle_placed"
    LOADING_STARTED = "loading_started"
    LOADING_COMPLETED = "loading_completed"
    READY_FOR_DISPATCH = "ready_for_dispatch"
    # in_transit
    ON_TIME = "on_time"
    DELAYED = "delayed"
    # delivered
    POD_PENDING = "pod_pending"
    POD_CLEANED = "pod_cleaned"
    BILLED = "billed"
    PAID = "paid"

    @property
    def timestamp_field(self) -> Optional[str]:
        """Shipment column stamped when this sub-status is entered."""
        return SUB_STATUS_TIMESTAMP_FIELDS.get(self)

    @property
    def label(self) -> str:
        return SUB_STATUS_LABELS[self]


SHIPMENT_TRANSITIONS: MappingProxyType = MappingProxyType({
    ShipmentStatus.CREATED: frozenset({ShipmentStatus.CONFIRMED}),
    ShipmentStatus.CONFIRMED: frozenset({ShipmentStatus.MAPPED, ShipmentStatus.CREATED}),
    ShipmentStatus.MAPPED: frozenset({ShipmentStatus.IN_PICKUP, ShipmentStatus.CONFIRMED}),
    ShipmentStatus.IN_PICKUP: frozenset({ShipmentStatus.IN_TRANSIT, ShipmentStatus.MAPPED}),
    ShipmentStatus.IN_TRANSIT: frozenset({ShipmentStatus.OUT_FOR_DELIVERY, ShipmentStatus.IN_PICKUP}),
    ShipmentStatus.OUT_FOR_DELIVERY: frozenset({
        ShipmentStatus.DELIVERED,
        ShipmentStatus.NDR,
        ShipmentStatus.IN_TRANSIT,
    }),
    ShipmentStatus.DELIVERED: frozenset({ShipmentStatus.SUCCESS, ShipmentStatus.NDR}),
    ShipmentStatus.NDR: frozenset({ShipmentStatus.OUT_FOR_DELIVERY, ShipmentStatus.RETURNED}),
    ShipmentStatus.RETURNED: frozenset(),
    ShipmentStatus.SUCCESS: frozenset(),
})

SUB_STATUS_PROGRESSIONS: MappingProxyType = MappingProxyType({
    ShipmentStatus.IN_PICKUP: (
        ShipmentSubStatus.VEHICLE_PLACED,
        ShipmentSubStatus.LOADING_STARTED,
        ShipmentSubStatus.LOADING_COMPLETED,
        ShipmentSubStatus.READY_FOR_DISPATCH,
    ),
    ShipmentStatus.IN_TRANSIT: (
        ShipmentSubStatus.ON_TIME,
        ShipmentSubStatus.DELAYED,
    ),
    ShipmentStatus.DELIVERED: (
        ShipmentSubStatus.POD_PENDING,
        ShipmentSubStatus.POD_CLEANED,
        ShipmentSubStatus.BILLED,
        ShipmentSubStatus.PAID,
    ),
})

STATUS_TIMESTAMP_FIELDS: MappingProxyType = MappingProxyType({
    ShipmentStatus.CONFIRMED: "confirmed_at",
    ShipmentStatus.MAPPED: "mapped_at",
    ShipmentStatus.IN_PICKUP: "in_pickup_at",
    ShipmentStatus.IN_TRANSIT: "in_transit_at",
    ShipmentStatus.OUT_FOR_DELIVERY: "out_for_delivery_at",
    ShipmentStatus.DELIVERED: "delivered_at",
    ShipmentStatus.NDR: "ndr_at",
    ShipmentStatus.RETURNED: "returned_at",
    ShipmentStatus.SUCCESS: "success_at",
})

SUB_STATUS_TIMESTAMP_FIELDS: MappingProxyType = MappingProxyType({
    ShipmentSubStatus.LOADING_STARTED: "loading_started_at",
    ShipmentSubStatus.LOADING_COMPLETED: "loading_completed_at",
    ShipmentSubStatus.POD_CLEANED: "pod_cleaned_at",
    ShipmentSubStatus.BILLED: "billed_at",
    ShipmentSubStatus.PAID: "paid_at",
})

SUB_STATUS_LABELS: MappingProxyType = MappingProxyType({
    ShipmentSubStatus.VEHICLE_PLACED: "Vehicle Placed",
    ShipmentSubStatus.LOADING_STARTED: "Loading Started",
    ShipmentSubStatus.LOADING_COMPLETED: "Loading Completed",
    ShipmentSubStatus.READY_FOR_DISPATCH: "Ready for Dispatch",
    ShipmentSubStatus.ON_TIME: "On Time",
    ShipmentSubStatus.DELAYED: "Delayed",
    ShipmentSubStatus.POD_PENDING: "POD Pending",
    ShipmentSubStatus.POD_CLEANED: "POD Cleaned",
    ShipmentSubStatus.BILLED: "Billed",
    ShipmentSubStatus.PAID: "Paid",
})

STATUS_LABELS: MappingProxyType = MappingProxyType({
    ShipmentStatus.CREATED: "Created",
    ShipmentStatus.CONFIRMED: "Confirmed",
    ShipmentStatus.MAPPED: "Mapped",
    ShipmentStatus.IN_PICKUP: "In Pickup",
    ShipmentStatus.IN_TRANSIT: "In Transit",
    ShipmentStatus.OUT_FOR_DELIVERY: "Out for Delivery",
    ShipmentStatus.DELIVERED: "Delivered",
    ShipmentStatus.NDR: "NDR",
    ShipmentStatus.RETURNED: "Returned",
    ShipmentStatus.SUCCESS: "Success",
})

# Required before CREATED -> CONFIRMED
MANDATORY_CONFIRMATION_FIELDS: tuple[str, ...] = (
    "shipment_code",
    "consignee_code",
    "material_id",
    "pickup_location_id",
    "drop_location_id",
)


class ChangeSource(str, Enum):
    """Who or what caused a status change."""
    MANUAL = "manual"
    GEOFENCE = "geofence"
    API = "api"
    SYSTEM = "system"


# =============================================================================
# Shipment exceptions
# =============================================================================

class ExceptionType(str, Enum):
    """Closed taxonomy of operational shipment exceptions."""
    DUPLICATE_MAPPING = "duplicate_mapping"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    VEHICLE_NOT_ARRIVED = "vehicle_not_arrived"
    LOADING_DISCREPANCY = "loading_discrepancy"
    TRACKING_UNAVAILABLE = "tracking_unavailable"
    NDR_CONSIGNEE_UNAVAILABLE = "ndr_consignee_unavailable"
    POD_REJECTED = "pod_rejected"
    INVOICE_DISPUTE = "invoice_dispute"
    DELAY_EXCEEDED = "delay_exceeded"
    WEIGHT_MISMATCH = "weight_mismatch"
    OTHER = "other"

    @property
    def label(self) -> str:
        return EXCEPTION_CATALOG[self][0]

    @property
    def default_severity(self) -> Severity:
        return EXCEPTION_CATALOG[self][1]

    @property
    def resolution_path(self) -> str:
        """Canned description of how this kind of exception gets resolved."""
        return EXCEPTION_CATALOG[self][2]


# type -> (label, default severity, resolution path)
EXCEPTION_CATALOG: MappingProxyType = MappingProxyType({
    ExceptionType.DUPLICATE_MAPPING: (
        "Duplicate Mapping", Severity.HIGH,
        "Ops fixes duplicate, system logs error",
    ),
    ExceptionType.CAPACITY_EXCEEDED: (
        "Vehicle Over-Capacity", Severity.HIGH,
        "Suggest alternative vehicle or split shipment",
    ),
    ExceptionType.VEHICLE_NOT_ARRIVED: (
        "Vehicle Not Arrived at Pickup", Severity.MEDIUM,
        "Alert Ops, escalate to transporter",
    ),
    ExceptionType.LOADING_DISCREPANCY: (
        "Loading Discrepancy", Severity.MEDIUM,
        "Ops to adjust shipment record before dispatch",
    ),
    ExceptionType.TRACKING_UNAVAILABLE: (
        "GPS/SIM Tracking Not Available", Severity.MEDIUM,
        "Switch to manual location update via UI",
    ),
    ExceptionType.NDR_CONSIGNEE_UNAVAILABLE: (
        "Consignee Not Available (NDR)", Severity.MEDIUM,
        "Reschedule or return",
    ),
    ExceptionType.POD_REJECTED: (
        "POD Rejected", Severity.MEDIUM,
        "Ops to re-upload correct POD",
    ),
    ExceptionType.INVOICE_DISPUTE: (
        "Invoice Dispute", Severity.HIGH,
        "Finance resolves; no closure until resolved",
    ),
    ExceptionType.DELAY_EXCEEDED: (
        "Delay Threshold Exceeded", Severity.MEDIUM,
        "Investigate delay reason, update ETA",
    ),
    ExceptionType.WEIGHT_MISMATCH: (
        "Weight Mismatch", Severity.MEDIUM,
        "Verify actual weight, update shipment",
    ),
    ExceptionType.OTHER: (
        "Other Exception", Severity.LOW,
        "Review and take appropriate action",
    ),
})


class ExceptionStatus(str, Enum):
    """Exception lifecycle: open -> acknowledged | escalated -> resolved."""
    OPEN = "open"
    ACKNOWLEDGED = "acknowledged"
    ESCALATED = "escalated"
    RESOLVED = "resolved"

    @property
    def allowed_transitions(self) -> frozenset["ExceptionStatus"]:
        return EXCEPTION_TRANSITIONS[self]

    @property
    def counts_as_open(self) -> bool:
        """Whether this status keeps the shipment's has_open_exception flag set."""
        return self in (ExceptionStatus.OPEN, ExceptionStatus.ESCALATED)

    @property
    def timestamp_field(self) -> Optional[str]:
        return {
            ExceptionStatus.ACKNOWLEDGED: "acknowledged_at",
            ExceptionStatus.ESCALATED: "escalated_at",
            ExceptionStatus.RESOLVED: "resolved_at",
        }.get(self)


EXCEPTION_TRANSITIONS: MappingProxyType = MappingProxyType({
    ExceptionStatus.OPEN: frozenset({
        ExceptionStatus.ACKNOWLEDGED,
        ExceptionStatus.ESCALATED,
        ExceptionStatus.RESOLVED,
    }),
    ExceptionStatus.ACKNOWLEDGED: frozenset({ExceptionStatus.ESCALATED, ExceptionStatus.RESOLVED}),
    ExceptionStatus.ESCALATED: frozenset({ExceptionStatus.RESOLVED}),
    ExceptionStatus.RESOLVED: frozenset(),
})


# =============================================================================
# Trips, alerts and tracking
# =============================================================================

class TripStatus(str, Enum):
    """Trip lifecycle status."""
    CREATED = "created"
    ONGOING = "ongoing"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    CLOSED = "closed"

    @property
    def is_terminal(self) -> bool:
        """Terminal trips no longer hold shipment mappings."""
        return self in (TripStatus.COMPLETED, TripStatus.CANCELLED, TripStatus.CLOSED)


class FreightType(str, Enum):
    """Freight mode of a trip."""
    FTL = "ftl"          # Full truck load
    PTL = "ptl"          # Part load, shared vehicle
    EXPRESS = "express"

    @property
    def requires_capacity_check(self) -> bool:
        return self == FreightType.PTL


class TrackingType(str, Enum):
    """How a trip's vehicle is tracked."""
    GPS = "gps"
    SIM = "sim"
    MANUAL = "manual"
    NONE = "none"


class TrackingSource(str, Enum):
    """Provider that delivered a location ping."""
    TELENITY = "telenity"
    WHEELSEYE = "wheelseye"
    MANUAL = "manual"


class TripAlertType(str, Enum):
    """Telemetry alert types raised against a trip."""
    ROUTE_DEVIATION = "route_deviation"
    STOPPAGE = "stoppage"
    IDLE_TIME = "idle_time"
    TRACKING_LOST = "tracking_lost"
    CONSENT_REVOKED = "consent_revoked"
    GEOFENCE_ENTRY = "geofence_entry"
    GEOFENCE_EXIT = "geofence_exit"
    SPEED_EXCEEDED = "speed_exceeded"
    DELAY_WARNING = "delay_warning"
    IDLE_DETECTED = "idle_detected"

    @property
    def label(self) -> str:
        return ALERT_CATALOG[self][0]

    @property
    def default_severity(self) -> Severity:
        return ALERT_CATALOG[self][1]

    @property
    def default_threshold(self) -> Optional[float]:
        return ALERT_CATALOG[self][2]

    @property
    def unit(self) -> Optional[str]:
        return ALERT_CATALOG[self][3]


# type -> (label, default severity, default threshold, unit)
ALERT_CATALOG: MappingProxyType = MappingProxyType({
    TripAlertType.ROUTE_DEVIATION: ("Route Deviation", Severity.MEDIUM, 500.0, "meters"),
    TripAlertType.STOPPAGE: ("Stoppage Detected", Severity.MEDIUM, 30.0, "minutes"),
    TripAlertType.IDLE_TIME: ("Idle/Detention Alert", Severity.MEDIUM, 60.0, "minutes"),
    TripAlertType.TRACKING_LOST: ("Tracking Lost", Severity.HIGH, 2.0, "intervals"),
    TripAlertType.CONSENT_REVOKED: ("Consent Revoked", Severity.CRITICAL, None, None),
    TripAlertType.GEOFENCE_ENTRY: ("Geofence Entry", Severity.LOW, None, None),
    TripAlertType.GEOFENCE_EXIT: ("Geofence Exit", Severity.LOW, None, None),
    TripAlertType.SPEED_EXCEEDED: ("Speed Exceeded", Severity.MEDIUM, 80.0, "km/h"),
    TripAlertType.DELAY_WARNING: ("Delay Warning", Severity.MEDIUM, 15.0, "%"),
    TripAlertType.IDLE_DETECTED: ("Trip Idle", Severity.HIGH, 120.0, "minutes"),
})


class AlertStatus(str, Enum):
    """Trip alert lifecycle status."""
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"

    @property
    def is_open(self) -> bool:
        """Open alerts count towards a trip's active_alert_count."""
        return self in (AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED)

    @property
    def allowed_transitions(self) -> frozenset["AlertStatus"]:
        return ALERT_TRANSITIONS[self]


ALERT_TRANSITIONS: MappingProxyType = MappingProxyType({
    AlertStatus.ACTIVE: frozenset({
        AlertStatus.ACKNOWLEDGED,
        AlertStatus.RESOLVED,
        AlertStatus.DISMISSED,
    }),
    AlertStatus.ACKNOWLEDGED: frozenset({AlertStatus.RESOLVED, AlertStatus.DISMISSED}),
    AlertStatus.RESOLVED: frozenset(),
    AlertStatus.DISMISSED: frozenset(),
})

OPEN_ALERT_STATUSES: tuple[AlertStatus, ...] = (AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED)
