from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "soil_testing_time_slots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("center_id", sa.Integer(), nullable=False, index=True),
        sa.Column("date", sa.Date(), nullable=False, index=True),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("max_bookings", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("current_bookings", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "center_id", "date", "start_time", "end_time", name="uq_time_slot_center_interval"
        ),
        sa.CheckConstraint("max_bookings > 0", name="ck_time_slot_max_bookings_positive"),
        sa.CheckConstraint("current_bookings >= 0", name="ck_time_slot_bookings_non_negative"),
        sa.CheckConstraint(
            "current_bookings <= max_bookings", name="ck_time_slot_bookings_within_capacity"
        ),
        sa.CheckConstraint("end_time > start_time", name="ck_time_slot_interval_order"),
    )

    request_status = postgresql.ENUM(
        "pending", "approved", "rejected", "cancelled", name="requeststatus"
    )
    request_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "soil_testing_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("farmer_id", sa.Integer(), nullable=False, index=True),
        sa.Column("center_id", sa.Integer(), nullable=False, index=True),
        sa.Column("preferred_date", sa.Date(), nullable=False, index=True),
        sa.Column("preferred_time_slot", sa.String(length=64)),
        sa.Column("farmer_phone", sa.String(length=32), nullable=False),
        sa.Column("farmer_location_address", sa.String(length=255)),
        sa.Column("farmer_latitude", sa.Float()),
        sa.Column("farmer_longitude", sa.Float()),
        sa.Column("additional_notes", sa.Text()),
        sa.Column(
            "status",
            postgresql.ENUM(name="requeststatus", create_type=False),
            server_default="pending",
            index=True,
        ),
        sa.Column("admin_notes", sa.Text()),
        sa.Column("rejection_reason", sa.String(length=255)),
        sa.Column("approved_date", sa.Date()),
        sa.Column("approved_start_time", sa.String(length=5)),
        sa.Column("approved_end_time", sa.String(length=5)),
        sa.Column("field_officer_id", sa.Integer()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    schedule_status = postgresql.ENUM(
        "pending", "approved", "completed", "rejected", "cancelled", name="schedulestatus"
    )
    schedule_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "soil_testing_schedules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "request_id",
            sa.Integer(),
            sa.ForeignKey("soil_testing_requests.id", ondelete="SET NULL"),
            unique=True,
        ),
        sa.Column("farmer_id", sa.Integer(), nullable=False, index=True),
        sa.Column("center_id", sa.Integer(), nullable=False, index=True),
        sa.Column("scheduled_date", sa.Date(), nullable=False, index=True),
        sa.Column("start_time", sa.String(length=5)),
        sa.Column("end_time", sa.String(length=5)),
        sa.Column(
            "status",
            postgresql.ENUM(name="schedulestatus", create_type=False),
            server_default="pending",
            index=True,
        ),
        sa.Column("farmer_phone", sa.String(length=32), nullable=False),
        sa.Column("farmer_location_address", sa.String(length=255)),
        sa.Column("farmer_latitude", sa.Float()),
        sa.Column("farmer_longitude", sa.Float()),
        sa.Column("admin_notes", sa.Text()),
        sa.Column("rejection_reason", sa.String(length=255)),
        sa.Column("field_officer_id", sa.Integer(), index=True),
        sa.Column(
            "time_slot_id",
            sa.Integer(),
            sa.ForeignKey("soil_testing_time_slots.id", ondelete="SET NULL"),
        ),
        sa.Column("qr_code_url", sa.Text()),
        sa.Column("qr_code_data", sa.Text()),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    actor_type = postgresql.ENUM("farmer", "admin", "field_officer", "system", name="actortype")
    actor_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_type", postgresql.ENUM(name="actortype", create_type=False)),
        sa.Column("actor_id", sa.Integer()),
        sa.Column("action", sa.String(length=255), index=True),
        sa.Column("payload", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("soil_testing_schedules")
    op.drop_table("soil_testing_requests")
    op.drop_table("soil_testing_time_slots")
    postgresql.ENUM(name="actortype").drop(op.get_bind(), checkfirst=True)
    postgresql.ENUM(name="schedulestatus").drop(op.get_bind(), checkfirst=True)
    postgresql.ENUM(name="requeststatus").drop(op.get_bind(), checkfirst=True)
