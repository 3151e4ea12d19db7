"""Initial schema: routes, delivery requests and bids.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── routes ────────────────────────────────────────────────────────
    op.create_table(
        "routes",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("driver_id", sa.Uuid, nullable=False),
        sa.Column("origin_lat", sa.Numeric(9, 6), nullable=False),
        sa.Column("origin_lng", sa.Numeric(9, 6), nullable=False),
        sa.Column("destination_lat", sa.Numeric(9, 6), nullable=False),
        sa.Column("destination_lng", sa.Numeric(9, 6), nullable=False),
        sa.Column("origin_address", sa.String(255), nullable=True),
        sa.Column("destination_address", sa.String(255), nullable=True),
        sa.Column("polyline", sa.Text, nullable=True),
        sa.Column("distance_km", sa.Numeric(10, 3), nullable=False),
        sa.Column("origin_cell", sa.String(20), nullable=True),
        sa.Column("destination_cell", sa.String(20), nullable=True),
        sa.Column("departure_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("detour_tolerance_km", sa.Numeric(6, 2), nullable=True),
        sa.Column("suggested_price_min", sa.Numeric(12, 2), nullable=True),
        sa.Column("suggested_price_max", sa.Numeric(12, 2), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "INITIATED",
                "OPEN",
                "BOOKED",
                "COMPLETED",
                "EXPIRED",
                "CANCELLED",
                name="routestatus",
            ),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_routes_status", "routes", ["status"])
    op.create_index("idx_routes_driver", "routes", ["driver_id"])
    op.create_index(
        "idx_routes_cells", "routes", ["origin_cell", "destination_cell"]
    )

    # ── delivery_requests ─────────────────────────────────────────────
    op.create_table(
        "delivery_requests",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("customer_id", sa.Uuid, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("weight_kg", sa.Numeric(10, 2), nullable=True),
        sa.Column("volume_m3", sa.Numeric(10, 3), nullable=True),
        sa.Column("pickup_lat", sa.Numeric(9, 6), nullable=True),
        sa.Column("pickup_lng", sa.Numeric(9, 6), nullable=True),
        sa.Column("dropoff_lat", sa.Numeric(9, 6), nullable=True),
        sa.Column("dropoff_lng", sa.Numeric(9, 6), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_delivery_requests_customer", "delivery_requests", ["customer_id"]
    )

    # ── bids ──────────────────────────────────────────────────────────
    op.create_table(
        "bids",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "route_id",
            sa.Uuid,
            sa.ForeignKey("routes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("customer_id", sa.Uuid, nullable=False),
        sa.Column(
            "delivery_request_id",
            sa.Uuid,
            sa.ForeignKey("delivery_requests.id"),
            nullable=True,
        ),
        sa.Column("offered_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("special_instructions", sa.Text, nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING",
                "ACCEPTED",
                "REJECTED",
                "WITHDRAWN",
                "EXPIRED",
                name="bidstatus",
            ),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_bids_route", "bids", ["route_id"])
    op.create_index("idx_bids_customer", "bids", ["customer_id"])
    op.create_index("idx_bids_status", "bids", ["status"])
    # One PENDING bid per (route, customer); enforced by the database.
    op.create_index(
        "uq_bids_one_pending_per_customer",
        "bids",
        ["route_id", "customer_id"],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING'"),
    )


def downgrade() -> None:
    op.drop_table("bids")
    op.drop_table("delivery_requests")
    op.drop_table("routes")
    op.execute("DROP TYPE IF EXISTS bidstatus")
    op.execute("DROP TYPE IF EXISTS routestatus")
