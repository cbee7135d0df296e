"""Events and attendee registrations."""

from alembic import op
import sqlalchemy as sa

revision = "202610010001"
down_revision = None
branch_labels = None
depends_on = None

EVENT_CATEGORIES = ("academic", "social", "career", "sports", "other")
EVENT_STATUSES = ("upcoming", "ongoing", "completed", "cancelled")


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=False),
        sa.Column(
            "category",
            sa.Enum(*EVENT_CATEGORIES, name="event_category"),
            nullable=False,
        ),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("image", sa.String(length=512), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*EVENT_STATUSES, name="event_status"),
            nullable=False,
            server_default="upcoming",
        ),
        sa.Column("organizer_id", sa.String(length=64), nullable=False),
        sa.Column("organizer_name", sa.String(length=255), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.CheckConstraint(
            "capacity IS NULL OR capacity > 0", name="ck_events_capacity_positive"
        ),
        sa.CheckConstraint("start_date < end_date", name="ck_events_start_before_end"),
    )
    op.create_index("ix_events_start_date", "events", ["start_date"])
    op.create_index("ix_events_category", "events", ["category"])
    op.create_index("ix_events_status", "events", ["status"])
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])

    op.create_table(
        "event_attendees",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "event_id",
            sa.Integer(),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("registered_at", sa.DateTime(), nullable=False),
        sa.Column("attended_at", sa.DateTime(), nullable=True),
        sa.Column("check_in_id", sa.String(length=64), nullable=False),
        sa.Column("qr_payload", sa.Text(), nullable=False),
        sa.UniqueConstraint("event_id", "user_id", name="uq_event_attendees_user"),
        sa.UniqueConstraint("check_in_id", name="uq_event_attendees_check_in_id"),
    )
    op.create_index("ix_event_attendees_event_id", "event_attendees", ["event_id"])


def downgrade() -> None:
    op.drop_index("ix_event_attendees_event_id", table_name="event_attendees")
    op.drop_table("event_attendees")
    op.drop_index("ix_events_organizer_id", table_name="events")
    op.drop_index("ix_events_status", table_name="events")
    op.drop_index("ix_events_category", table_name="events")
    op.drop_index("ix_events_start_date", table_name="events")
    op.drop_table("events")
    sa.Enum(name="event_status").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="event_category").drop(op.get_bind(), checkfirst=True)
