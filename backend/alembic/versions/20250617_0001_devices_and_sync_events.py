"""Create devices and sync_events tables

Revision ID: 20250617_0001
Revises:
Create Date: 2025-06-17

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20250617_0001"
down_revision = None
branch_labels = None
depends_on = None

TABLES_WITH_UPDATED_AT = ("devices", "sync_events")


def _is_postgresql() -> bool:
    return op.get_bind().dialect.name == "postgresql"


def upgrade() -> None:
    op.create_table(
        "devices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("device_id", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.UniqueConstraint("device_id", name="uq_devices_device_id"),
    )
    op.create_index("ix_devices_id", "devices", ["id"])

    op.create_table(
        "sync_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "device_id",
            sa.String(length=255),
            sa.ForeignKey("devices.device_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("total_files_synced", sa.Integer(), server_default="0", nullable=False),
        sa.Column("total_errors", sa.Integer(), server_default="0", nullable=False),
        sa.Column("internet_speed", sa.Numeric(10, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_sync_events_device_id", "sync_events", ["device_id"])
    op.create_index("ix_sync_events_timestamp", "sync_events", ["timestamp"])
    op.create_index("ix_sync_events_created_at", "sync_events", ["created_at"])

    # Keep updated_at current for writes that bypass the ORM
    if _is_postgresql():
        op.execute("""
            CREATE OR REPLACE FUNCTION update_updated_at_column()
            RETURNS TRIGGER AS $$
            BEGIN
                NEW.updated_at = CURRENT_TIMESTAMP;
                RETURN NEW;
            END;
            $$ language 'plpgsql'
        """)
        for table in TABLES_WITH_UPDATED_AT:
            op.execute(f"""
                CREATE TRIGGER update_{table}_updated_at
                    BEFORE UPDATE ON {table}
                    FOR EACH ROW EXECUTE FUNCTION update_updated_at_column()
            """)


def downgrade() -> None:
    if _is_postgresql():
        for table in reversed(TABLES_WITH_UPDATED_AT):
            op.execute(f"DROP TRIGGER IF EXISTS update_{table}_updated_at ON {table}")
        op.execute("DROP FUNCTION IF EXISTS update_updated_at_column()")

    # Order matters due to the foreign key
    op.drop_index("ix_sync_events_created_at", table_name="sync_events")
    op.drop_index("ix_sync_events_timestamp", table_name="sync_events")
    op.drop_index("ix_sync_events_device_id", table_name="sync_events")
    op.drop_table("sync_events")

    op.drop_index("ix_devices_id", table_name="devices")
    op.drop_table("devices")
