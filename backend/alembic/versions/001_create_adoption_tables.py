"""Create shelters, pets, adoptions and activities tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Initial schema for the adoption lifecycle and activity registration.
How:   Embedded arrays (timeline, visits, fees, participants, ...) are JSONB
       columns. adoptions, pets and activities carry a `version` column used
       for optimistic locking.

Rollback: downgrade() drops all four tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "shelters",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("adoptions_total", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("adoptions_this_year", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "stats_year", sa.Integer(), nullable=True,
            comment="Calendar year adoptions_this_year refers to",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_shelters"),
    )

    op.create_table(
        "pets",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("species", sa.String(50), nullable=False),
        sa.Column("shelter_id", sa.String(36), nullable=False),
        sa.Column("adoption_fee", sa.Numeric(10, 2), nullable=False),
        sa.Column(
            "adoption_status", sa.String(20),
            server_default=sa.text("'available'"), nullable=False,
            comment="available, pending, adopted, not-available, hold",
        ),
        sa.Column("adopted_date", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("adopted_by", sa.String(64), nullable=True),
        sa.Column(
            "adoption_history", postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"), nullable=False,
        ),
        *_timestamps(),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_pets"),
        sa.ForeignKeyConstraint(["shelter_id"], ["shelters.id"], name="fk_pets_shelter"),
    )
    op.create_index("ix_pets_shelter_id", "pets", ["shelter_id"])
    op.create_index("ix_pets_adoption_status", "pets", ["adoption_status"])

    op.create_table(
        "adoptions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("pet_id", sa.String(36), nullable=False),
        sa.Column("applicant_id", sa.String(64), nullable=False),
        sa.Column("shelter_id", sa.String(36), nullable=False),
        sa.Column(
            "status", sa.String(30),
            server_default=sa.text("'submitted'"), nullable=False,
        ),
        sa.Column(
            "held_from", sa.String(30), nullable=True,
            comment="Status an on-hold application returns to",
        ),
        sa.Column("personal_info", postgresql.JSONB(), nullable=False),
        sa.Column("housing_info", postgresql.JSONB(), nullable=False),
        sa.Column("applicant_references", postgresql.JSONB(), nullable=False),
        sa.Column("visits", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column(
            "timeline", postgresql.JSONB(), nullable=False,
            comment="Append-only status history, oldest first",
        ),
        sa.Column(
            "internal_notes", postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"), nullable=False,
        ),
        sa.Column("adoption_fee", sa.Numeric(10, 2), nullable=False),
        sa.Column(
            "additional_fees", postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"), nullable=False,
        ),
        sa.Column("amount_paid", sa.Numeric(10, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("payment_reference", sa.String(100), nullable=True),
        sa.Column("payments", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column(
            "pet_marked_pending", sa.Boolean(),
            server_default=sa.text("false"), nullable=False,
        ),
        sa.Column("approved_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("withdrawn_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("returned_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_adoptions"),
        sa.ForeignKeyConstraint(["pet_id"], ["pets.id"], name="fk_adoptions_pet"),
        sa.ForeignKeyConstraint(["shelter_id"], ["shelters.id"], name="fk_adoptions_shelter"),
    )
    op.create_index("ix_adoptions_applicant_id", "adoptions", ["applicant_id"])
    op.create_index("ix_adoptions_shelter_id", "adoptions", ["shelter_id"])
    op.create_index("ix_adoptions_status", "adoptions", ["status"])
    op.create_index("idx_adoptions_pet_applicant", "adoptions", ["pet_id", "applicant_id"])
    op.create_index(
        "idx_adoptions_created_at",
        "adoptions",
        [sa.text("created_at DESC")],
    )

    op.create_table(
        "activities",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column("category", sa.String(30), nullable=False),
        sa.Column(
            "status", sa.String(20),
            server_default=sa.text("'published'"), nullable=False,
        ),
        sa.Column("shelter_id", sa.String(36), nullable=True),
        sa.Column("start_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("end_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("registration_deadline", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("capacity_max", sa.Integer(), nullable=False),
        sa.Column("capacity_current", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("capacity_waitlist", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "participants", postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"), nullable=False,
        ),
        *_timestamps(),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_activities"),
        sa.ForeignKeyConstraint(["shelter_id"], ["shelters.id"], name="fk_activities_shelter"),
        sa.CheckConstraint("capacity_current <= capacity_max", name="ck_activities_capacity"),
    )
    op.create_index("ix_activities_shelter_id", "activities", ["shelter_id"])
    op.create_index("idx_activities_start_status", "activities", ["start_at", "status"])


def downgrade() -> None:
    op.drop_index("idx_activities_start_status", table_name="activities")
    op.drop_index("ix_activities_shelter_id", table_name="activities")
    op.drop_table("activities")

    op.drop_index("idx_adoptions_created_at", table_name="adoptions")
    op.drop_index("idx_adoptions_pet_applicant", table_name="adoptions")
    op.drop_index("ix_adoptions_status", table_name="adoptions")
    op.drop_index("ix_adoptions_shelter_id", table_name="adoptions")
    op.drop_index("ix_adoptions_applicant_id", table_name="adoptions")
    op.drop_table("adoptions")

    op.drop_index("ix_pets_adoption_status", table_name="pets")
    op.drop_index("ix_pets_shelter_id", table_name="pets")
    op.drop_table("pets")

    op.drop_table("shelters")
