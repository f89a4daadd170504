"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-02-02 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "agendas",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("date", sa.String(length=10), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("date", name="uq_agendas_date"),
    )

    op.create_table(
        "routines",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), server_default=sa.text("'ACTIVE'"), nullable=False),
        sa.Column("target", sa.String(length=64), nullable=False),
        sa.Column("separate_into", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("repeat_interval_minutes", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_routines_status", "routines", ["status"])

    op.create_table(
        "routine_tasks",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "routine_id",
            sa.String(length=36),
            sa.ForeignKey("routines.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("target", sa.String(length=64), nullable=False),
        sa.Column("position", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_routine_tasks_routine_id", "routine_tasks", ["routine_id"])

    op.create_table(
        "routine_task_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "routine_task_id",
            sa.String(length=36),
            sa.ForeignKey("routine_tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("value", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_routine_task_logs_task_created", "routine_task_logs", ["routine_task_id", "created_at"])

    op.create_table(
        "agenda_items",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("agenda_id", sa.String(length=36), sa.ForeignKey("agendas.id"), nullable=False),
        sa.Column("task_id", sa.String(length=36), nullable=True),
        sa.Column(
            "routine_task_id",
            sa.String(length=36),
            sa.ForeignKey("routine_tasks.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("type", sa.String(length=32), server_default=sa.text("'TASK'"), nullable=False),
        sa.Column("status", sa.String(length=16), server_default=sa.text("'PENDING'"), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("position", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("notification_id", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_agenda_items_agenda_id", "agenda_items", ["agenda_id"])
    op.create_index("ix_agenda_items_task_id", "agenda_items", ["task_id"])
    op.create_index("ix_agenda_items_routine_task_id", "agenda_items", ["routine_task_id"])
    op.create_index("ix_agenda_items_status_start", "agenda_items", ["status", "start_at"])

    op.create_table(
        "agenda_item_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("agenda_item_id", sa.String(length=36), sa.ForeignKey("agenda_items.id"), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("previous_value_json", sa.Text(), nullable=True),
        sa.Column("new_value_json", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_agenda_item_logs_agenda_item_id", "agenda_item_logs", ["agenda_item_id"])

    op.create_table(
        "alarm_plans",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "routine_task_id",
            sa.String(length=36),
            sa.ForeignKey("routine_tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("target_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=16), server_default=sa.text("'PENDING'"), nullable=False),
        sa.Column("repeat_interval_minutes", sa.Integer(), nullable=True),
        sa.Column("meta_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_alarm_plans_target_at", "alarm_plans", ["target_at"])
    op.create_index("ix_alarm_plans_created_at", "alarm_plans", ["created_at"])
    op.create_index("ix_alarm_plans_task_type", "alarm_plans", ["routine_task_id", "type"])


def downgrade() -> None:
    op.drop_index("ix_alarm_plans_task_type", table_name="alarm_plans")
    op.drop_index("ix_alarm_plans_created_at", table_name="alarm_plans")
    op.drop_index("ix_alarm_plans_target_at", table_name="alarm_plans")
    op.drop_table("alarm_plans")
    op.drop_index("ix_agenda_item_logs_agenda_item_id", table_name="agenda_item_logs")
    op.drop_table("agenda_item_logs")
    op.drop_index("ix_agenda_items_status_start", table_name="agenda_items")
    op.drop_index("ix_agenda_items_routine_task_id", table_name="agenda_items")
    op.drop_index("ix_agenda_items_task_id", table_name="agenda_items")
    op.drop_index("ix_agenda_items_agenda_id", table_name="agenda_items")
    op.drop_table("agenda_items")
    op.drop_index("ix_routine_task_logs_task_created", table_name="routine_task_logs")
    op.drop_table("routine_task_logs")
    op.drop_index("ix_routine_tasks_routine_id", table_name="routine_tasks")
    op.drop_table("routine_tasks")
    op.drop_index("ix_routines_status", table_name="routines")
    op.drop_table("routines")
    op.drop_table("agendas")
