"""0001_baseline

Baseline migration for the TCT schema: trips, shipments, exceptions,
alerts and tracking points.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# Values are frozen here; later enum additions get their own migration.
ENUM_TYPES = {
    "severity_level": ("low", "medium", "high", "critical"),
    "shipment_status": (
        "created", "confirmed", "mapped", "in_pickup", "in_transit",
        "out_for_delivery", "delivered", "ndr", "returned", "success",
    ),
    "shipment_sub_status": (
        "vehicle_placed", "loading_started", "loading_completed", "ready_for_dispatch",
        "on_time", "delayed",
        "pod_pending", "pod_cleaned", "billed", "paid",
    ),
    "change_source": ("manual", "geofence", "api", "system"),
    "exception_type": (
        "duplicate_mapping", "capacity_exceeded", "vehicle_not_arrived",
        "loading_discrepancy", "tracking_unavailable", "ndr_consignee_unavailable",
        "pod_rejected", "invoice_dispute", "delay_exceeded", "weight_mismatch", "other",
    ),
    "exception_status": ("open", "acknowledged", "escalated", "resolved"),
    "trip_status": ("created", "ongoing", "on_hold", "completed", "cancelled", "closed"),
    "freight_type": ("ftl", "ptl", "express"),
    "tracking_type": ("gps", "sim", "manual", "none"),
    "tracking_source": ("telenity", "wheelseye", "manual"),
    "trip_alert_type": (
        "route_deviation", "stoppage", "idle_time", "tracking_lost", "consent_revoked",
        "geofence_entry", "geofence_exit", "speed_exceeded", "delay_warning", "idle_detected",
    ),
    "alert_status": ("active", "acknowledged", "resolved", "dismissed"),
}

TABLES = [
    "vehicle_types",
    "vehicles",
    "trips",
    "shipments",
    "trip_shipment_map",
    "shipment_status_history",
    "shipment_exceptions",
    "trip_alerts",
    "tracking_points",
]


def upgrade() -> None:
    # ------------------------------------------------------------------
    # Extensions
    # ------------------------------------------------------------------
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')
    op.execute('CREATE EXTENSION IF NOT EXISTS "postgis"')

    # ------------------------------------------------------------------
    # Enum types
    # ------------------------------------------------------------------
    for name, values in ENUM_TYPES.items():
        labels = ", ".join(f"'{v}'" for v in values)
        op.execute(f"CREATE TYPE {name} AS ENUM ({labels})")

    # ------------------------------------------------------------------
    # Tables (dependency order)
    # ------------------------------------------------------------------

    # --- vehicle_types ---
    op.execute("""
        CREATE TABLE vehicle_types (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            type_name VARCHAR(100) UNIQUE NOT NULL,
            weight_capacity_kg DECIMAL(10,2),
            volume_capacity_cbm DECIMAL(10,3),
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """)

    # --- vehicles ---
    op.execute("""
        CREATE TABLE vehicles (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            vehicle_number VARCHAR(20) UNIQUE NOT NULL,
            vehicle_type_id UUID REFERENCES vehicle_types(id),
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """)

    # --- trips ---
    op.execute("""
        CREATE TABLE trips (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            trip_code VARCHAR(50) UNIQUE NOT NULL,
            status trip_status NOT NULL DEFAULT 'created',
            freight_type freight_type NOT NULL DEFAULT 'ftl',
            vehicle_id UUID REFERENCES vehicles(id),
            driver_id UUID,
            driver_name VARCHAR(100),
            driver_mobile VARCHAR(20),
            lane_id UUID,
            planned_start_time TIMESTAMP WITH TIME ZONE,
            planned_end_time TIMESTAMP WITH TIME ZONE,
            planned_eta TIMESTAMP WITH TIME ZONE,
            current_eta TIMESTAMP WITH TIME ZONE,
            actual_start_time TIMESTAMP WITH TIME ZONE,
            route_polyline TEXT,
            tracking_type tracking_type,
            last_ping_at TIMESTAMP WITH TIME ZONE,
            is_trackable BOOLEAN NOT NULL DEFAULT TRUE,
            active_alert_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """)

    # --- shipments ---
    op.execute("""
        CREATE TABLE shipments (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            shipment_code VARCHAR(50) UNIQUE,
            consignee_code VARCHAR(50),
            material_id UUID,
            pickup_location_id UUID,
            drop_location_id UUID,
            trip_id UUID REFERENCES trips(id),
            status shipment_status NOT NULL DEFAULT 'created',
            sub_status shipment_sub_status,
            weight_kg DECIMAL(10,2),
            volume_cbm DECIMAL(10,3),
            planned_pickup_time TIMESTAMP WITH TIME ZONE,
            planned_delivery_time TIMESTAMP WITH TIME ZONE,
            delay_percentage DECIMAL(7,2),
            is_delayed BOOLEAN NOT NULL DEFAULT FALSE,
            exception_count INTEGER NOT NULL DEFAULT 0,
            has_open_exception BOOLEAN NOT NULL DEFAULT FALSE,
            confirmed_at TIMESTAMP WITH TIME ZONE,
            mapped_at TIMESTAMP WITH TIME ZONE,
            in_pickup_at TIMESTAMP WITH TIME ZONE,
            in_transit_at TIMESTAMP WITH TIME ZONE,
            out_for_delivery_at TIMESTAMP WITH TIME ZONE,
            delivered_at TIMESTAMP WITH TIME ZONE,
            ndr_at TIMESTAMP WITH TIME ZONE,
            returned_at TIMESTAMP WITH TIME ZONE,
            success_at TIMESTAMP WITH TIME ZONE,
            loading_started_at TIMESTAMP WITH TIME ZONE,
            loading_completed_at TIMESTAMP WITH TIME ZONE,
            pod_cleaned_at TIMESTAMP WITH TIME ZONE,
            billed_at TIMESTAMP WITH TIME ZONE,
            paid_at TIMESTAMP WITH TIME ZONE,
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """)

    # --- trip_shipment_map ---
    op.execute("""
        CREATE TABLE trip_shipment_map (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            trip_id UUID NOT NULL REFERENCES trips(id),
            shipment_id UUID NOT NULL REFERENCES shipments(id),
            sequence_order INTEGER NOT NULL DEFAULT 1,
            mapped_at TIMESTAMP WITH TIME ZONE,
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
            CONSTRAINT uq_trip_shipment_map_trip_shipment UNIQUE (trip_id, shipment_id)
        )
    """)

    # --- shipment_status_history (append-only) ---
    op.execute("""
        CREATE TABLE shipment_status_history (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            shipment_id UUID NOT NULL REFERENCES shipments(id),
            previous_status shipment_status,
            new_status shipment_status NOT NULL,
            previous_sub_status shipment_sub_status,
            new_sub_status shipment_sub_status,
            change_source change_source NOT NULL DEFAULT 'manual',
            changed_by VARCHAR(100),
            notes TEXT,
            metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """)

    # --- shipment_exceptions ---
    op.execute("""
        CREATE TABLE shipment_exceptions (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            shipment_id UUID NOT NULL REFERENCES shipments(id),
            trip_id UUID REFERENCES trips(id),
            exception_type exception_type NOT NULL,
            status exception_status NOT NULL DEFAULT 'open',
            severity severity_level NOT NULL DEFAULT 'medium',
            description TEXT NOT NULL,
            resolution_path TEXT,
            resolution_notes TEXT,
            escalated_to VARCHAR(100),
            metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
            detected_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
            acknowledged_at TIMESTAMP WITH TIME ZONE,
            escalated_at TIMESTAMP WITH TIME ZONE,
            resolved_at TIMESTAMP WITH TIME ZONE,
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """)

    # --- trip_alerts ---
    op.execute("""
        CREATE TABLE trip_alerts (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            trip_id UUID NOT NULL REFERENCES trips(id),
            alert_type trip_alert_type NOT NULL,
            status alert_status NOT NULL DEFAULT 'active',
            severity severity_level NOT NULL DEFAULT 'medium',
            title VARCHAR(200) NOT NULL,
            description TEXT,
            threshold_value DECIMAL(12,2),
            actual_value DECIMAL(12,2),
            metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
            location GEOMETRY(POINT, 4326),
            latitude DECIMAL(10,7),
            longitude DECIMAL(10,7),
            triggered_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
            acknowledged_at TIMESTAMP WITH TIME ZONE,
            acknowledged_by VARCHAR(100),
            resolved_at TIMESTAMP WITH TIME ZONE,
            resolved_by VARCHAR(100),
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """)

    # --- tracking_points ---
    op.execute("""
        CREATE TABLE tracking_points (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            trip_id UUID NOT NULL REFERENCES trips(id),
            vehicle_id UUID REFERENCES vehicles(id),
            sequence_number INTEGER NOT NULL,
            location GEOMETRY(POINT, 4326),
            latitude DECIMAL(10,7) NOT NULL,
            longitude DECIMAL(10,7) NOT NULL,
            speed_kmph DECIMAL(6,2),
            heading DECIMAL(5,2),
            event_time TIMESTAMP WITH TIME ZONE NOT NULL,
            detailed_address TEXT,
            source tracking_source NOT NULL DEFAULT 'manual',
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
            CONSTRAINT uq_tracking_points_trip_sequence UNIQUE (trip_id, sequence_number)
        )
    """)

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------
    op.execute("CREATE INDEX ix_trips_status ON trips (status)")

    op.execute("CREATE INDEX ix_shipments_trip_id ON shipments (trip_id)")
    op.execute("CREATE INDEX ix_shipments_status ON shipments (status)")

    op.execute("CREATE INDEX ix_trip_shipment_map_trip_id ON trip_shipment_map (trip_id)")
    op.execute("CREATE INDEX ix_trip_shipment_map_shipment_id ON trip_shipment_map (shipment_id)")

    op.execute(
        "CREATE INDEX ix_shipment_status_history_shipment_id "
        "ON shipment_status_history (shipment_id, created_at DESC)"
    )

    op.execute("CREATE INDEX ix_shipment_exceptions_shipment_id ON shipment_exceptions (shipment_id)")
    op.execute("CREATE INDEX ix_shipment_exceptions_exception_type ON shipment_exceptions (exception_type)")
    op.execute("CREATE INDEX ix_shipment_exceptions_status ON shipment_exceptions (status)")

    op.execute("CREATE INDEX ix_trip_alerts_trip_id ON trip_alerts (trip_id)")
    op.execute("CREATE INDEX ix_trip_alerts_alert_type ON trip_alerts (alert_type)")
    op.execute("CREATE INDEX ix_trip_alerts_status ON trip_alerts (status)")
    op.execute("CREATE INDEX ix_trip_alerts_triggered_at ON trip_alerts (triggered_at)")
    # At most one active alert per (trip, type)
    op.execute(
        "CREATE UNIQUE INDEX uq_trip_alerts_one_active_per_type "
        "ON trip_alerts (trip_id, alert_type) WHERE status = 'active'"
    )
    op.execute("CREATE INDEX idx_trip_alerts_location ON trip_alerts USING GIST (location)")

    op.execute("CREATE INDEX ix_tracking_points_trip_id ON tracking_points (trip_id)")
    op.execute("CREATE INDEX ix_tracking_points_event_time ON tracking_points (event_time)")
    op.execute("CREATE INDEX idx_tracking_points_location ON tracking_points USING GIST (location)")

    # ------------------------------------------------------------------
    # updated_at triggers
    # ------------------------------------------------------------------
    op.execute("""
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = CURRENT_TIMESTAMP;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
    """)

    for table in TABLES:
        op.execute(
            f"CREATE TRIGGER update_{table}_updated_at "
            f"BEFORE UPDATE ON {table} "
            f"FOR EACH ROW EXECUTE FUNCTION update_updated_at_column()"
        )


def downgrade() -> None:
    for table in TABLES:
        op.execute(f"DROP TRIGGER IF EXISTS update_{table}_updated_at ON {table}")
    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column()")

    # ------------------------------------------------------------------
    # Drop tables (reverse dependency order)
    # ------------------------------------------------------------------
    for table in reversed(TABLES):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")

    # ------------------------------------------------------------------
    # Drop enum types
    # ------------------------------------------------------------------
    for name in reversed(list(ENUM_TYPES)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
