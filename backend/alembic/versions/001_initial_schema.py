"""Initial schema — knowledge areas, instructors, requests, request messages.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "knowledge_area",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False, unique=True),
    )

    op.create_table(
        "instructor",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("first_name", sa.String(60), nullable=False),
        sa.Column("second_name", sa.String(60), nullable=True),
        sa.Column("first_last_name", sa.String(60), nullable=False),
        sa.Column("second_last_name", sa.String(60), nullable=True),
        sa.Column("number_identification", sa.String(30), nullable=False, server_default=""),
        sa.Column("email", sa.String(120), nullable=True),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("knowledge_area_id", sa.Integer, sa.ForeignKey("knowledge_area.id"), nullable=True),
        sa.Column("is_followup_instructor", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("assigned_learners", sa.Integer, nullable=False, server_default="0"),
        sa.Column("max_assigned_learners", sa.Integer, nullable=False, server_default="80"),
        sa.CheckConstraint(
            "assigned_learners >= 0 AND assigned_learners <= max_assigned_learners",
            name="ck_instructor_capacity",
        ),
    )

    op.create_table(
        "request_asignation",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("apprentice_id", sa.Integer, nullable=False),
        sa.Column("enterprise_id", sa.Integer, nullable=True),
        sa.Column("modality", sa.String(80), nullable=False),
        sa.Column("request_state", sa.String(20), nullable=False, server_default="SIN_ASIGNAR"),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("request_date", sa.Date, nullable=False, server_default=sa.func.current_date()),
        sa.Column("date_start_production_stage", sa.Date, nullable=True),
        sa.Column("date_end_production_stage", sa.Date, nullable=True),
        sa.Column("fecha_inicio_contrato", sa.Date, nullable=True),
        sa.Column("fecha_fin_contrato", sa.Date, nullable=True),
        sa.Column("instructor_id", sa.Integer, sa.ForeignKey("instructor.id"), nullable=True),
        sa.Column("name_apprentice", sa.String(200), nullable=False, server_default=""),
        sa.Column("type_identification", sa.Integer, nullable=True),
        sa.Column("number_identification", sa.String(30), nullable=False, server_default=""),
        sa.Column("numero_ficha", sa.String(30), nullable=True),
        sa.Column("program", sa.String(200), nullable=True),
    )

    op.create_table(
        "request_message",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("request_id", sa.Integer, sa.ForeignKey("request_asignation.id"), nullable=False),
        sa.Column("content", sa.String(500), nullable=False),
        sa.Column("type_message", sa.String(20), nullable=False),
        sa.Column("whose_message", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "length(content) BETWEEN 1 AND 500", name="ck_request_message_content",
        ),
    )
    op.create_index(
        "ix_request_message_request_id", "request_message", ["request_id", "id"],
    )


def downgrade() -> None:
    op.drop_index("ix_request_message_request_id", table_name="request_message")
    op.drop_table("request_message")
    op.drop_table("request_asignation")
    op.drop_table("instructor")
    op.drop_table("knowledge_area")
