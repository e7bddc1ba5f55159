"""tank scheduling schema

Revision ID: 20261019_01
Revises: 
Create Date: 2026-10-19 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("username", sa.String(length=40), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
        sa.UniqueConstraint("email"),
    )
    op.create_index(op.f("ix_users_id"), "users", ["id"], unique=False)
    op.create_index(op.f("ix_users_tenant_id"), "users", ["tenant_id"], unique=False)

    op.create_table(
        "tanks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=80), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("capacity_liters", sa.Float(), nullable=False),
        sa.Column("min_fill_percent", sa.Float(), nullable=False, server_default="20"),
        sa.Column("max_fill_percent", sa.Float(), nullable=False, server_default="95"),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("location", sa.String(length=120), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "name", name="uq_tanks_tenant_name"),
    )
    op.create_index(op.f("ix_tanks_id"), "tanks", ["id"], unique=False)
    op.create_index(op.f("ix_tanks_tenant_id"), "tanks", ["tenant_id"], unique=False)

    op.create_table(
        "batches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("batch_number", sa.String(length=40), nullable=False),
        sa.Column("recipe_id", sa.Integer(), nullable=True),
        sa.Column("volume_liters", sa.Float(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("original_gravity", sa.Float(), nullable=True),
        sa.Column("final_gravity", sa.Float(), nullable=True),
        sa.Column("calculated_abv", sa.Float(), nullable=True),
        sa.Column("brewed_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=40), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_batches_id"), "batches", ["id"], unique=False)
    op.create_index(op.f("ix_batches_tenant_id"), "batches", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_batches_batch_number"), "batches", ["batch_number"], unique=False)

    op.create_table(
        "gravity_readings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("batch_id", sa.Integer(), nullable=False),
        sa.Column("gravity", sa.Float(), nullable=False),
        sa.Column("temperature", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("recorded_at", sa.DateTime(), nullable=False),
        sa.Column("recorded_by", sa.String(length=40), nullable=False),
        sa.ForeignKeyConstraint(["batch_id"], ["batches.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_gravity_readings_id"), "gravity_readings", ["id"], unique=False)
    op.create_index(op.f("ix_gravity_readings_batch_id"), "gravity_readings", ["batch_id"], unique=False)

    op.create_table(
        "batch_timeline",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("batch_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=40), nullable=False),
        sa.Column("title", sa.String(length=140), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("created_by", sa.String(length=40), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["batch_id"], ["batches.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_batch_timeline_id"), "batch_timeline", ["id"], unique=False)
    op.create_index(op.f("ix_batch_timeline_batch_id"), "batch_timeline", ["batch_id"], unique=False)

    op.create_table(
        "lots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("lot_code", sa.String(length=40), nullable=False),
        sa.Column("planned_volume", sa.Float(), nullable=False),
        sa.Column("split_ratio", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=40), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_lots_id"), "lots", ["id"], unique=False)
    op.create_index(op.f("ix_lots_tenant_id"), "lots", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_lots_lot_code"), "lots", ["lot_code"], unique=False)

    op.create_table(
        "lot_batches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("lot_id", sa.Integer(), nullable=False),
        sa.Column("batch_id", sa.Integer(), nullable=False),
        sa.Column("volume_portion", sa.Float(), nullable=False),
        sa.Column("batch_percentage", sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(["lot_id"], ["lots.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["batch_id"], ["batches.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("lot_id", "batch_id", name="uq_lot_batches_lot_batch"),
    )
    op.create_index(op.f("ix_lot_batches_id"), "lot_batches", ["id"], unique=False)
    op.create_index(op.f("ix_lot_batches_lot_id"), "lot_batches", ["lot_id"], unique=False)
    op.create_index(op.f("ix_lot_batches_batch_id"), "lot_batches", ["batch_id"], unique=False)

    op.create_table(
        "tank_assignments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("lot_id", sa.Integer(), nullable=False),
        sa.Column("tank_id", sa.Integer(), nullable=False),
        sa.Column("planned_start", sa.DateTime(), nullable=False),
        sa.Column("planned_end", sa.DateTime(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("phase", sa.String(length=20), nullable=False),
        sa.Column("planned_volume", sa.Float(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=40), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["lot_id"], ["lots.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["tank_id"], ["tanks.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_tank_assignments_id"), "tank_assignments", ["id"], unique=False)
    op.create_index(op.f("ix_tank_assignments_tenant_id"), "tank_assignments", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_tank_assignments_lot_id"), "tank_assignments", ["lot_id"], unique=False)
    op.create_index(op.f("ix_tank_assignments_tank_id"), "tank_assignments", ["tank_id"], unique=False)
    op.create_index(
        "ix_tank_assignments_tank_status",
        "tank_assignments",
        ["tenant_id", "tank_id", "status"],
        unique=False,
    )

    op.create_table(
        "transfer_plans",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("transfer_code", sa.String(length=40), nullable=False),
        sa.Column("lot_id", sa.Integer(), nullable=False),
        sa.Column("assignment_id", sa.Integer(), nullable=False),
        sa.Column("from_tank_id", sa.Integer(), nullable=False),
        sa.Column("to_tank_id", sa.Integer(), nullable=False),
        sa.Column("planned_at", sa.DateTime(), nullable=False),
        sa.Column("executed_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=40), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["lot_id"], ["lots.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assignment_id"], ["tank_assignments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["from_tank_id"], ["tanks.id"]),
        sa.ForeignKeyConstraint(["to_tank_id"], ["tanks.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_transfer_plans_id"), "transfer_plans", ["id"], unique=False)
    op.create_index(op.f("ix_transfer_plans_tenant_id"), "transfer_plans", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_transfer_plans_lot_id"), "transfer_plans", ["lot_id"], unique=False)
    op.create_index(op.f("ix_transfer_plans_assignment_id"), "transfer_plans", ["assignment_id"], unique=False)


def downgrade() -> None:
    op.drop_table("transfer_plans")
    op.drop_table("tank_assignments")
    op.drop_table("lot_batches")
    op.drop_table("lots")
    op.drop_table("batch_timeline")
    op.drop_table("gravity_readings")
    op.drop_table("batches")
    op.drop_table("tanks")
    op.drop_table("users")
