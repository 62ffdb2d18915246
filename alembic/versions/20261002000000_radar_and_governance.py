"""Domain scores, radar state/history and governance rules.

Revision ID: 20261002000000
Revises: 20261001000000
Create Date: 2026-10-02

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261002000000"
down_revision: Union[str, None] = "20261001000000"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_DOMAIN_TABLES: dict[str, tuple[str, ...]] = {
    "repository_domain_scores": (
        "secure_coding_score",
        "fix_speed_score",
        "risk_management_score",
        "consistency_score",
    ),
    "marketplace_domain_scores": (
        "professional_reliability_score",
        "delivery_discipline_score",
        "applied_security_score",
    ),
    "oss_domain_scores": (
        "engineering_depth_score",
        "security_leadership_score",
        "oss_impact_score",
    ),
}


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False)


def upgrade() -> None:
    for table, score_columns in _DOMAIN_TABLES.items():
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("user_id", sa.String(length=255), nullable=False),
            *[sa.Column(c, sa.Float(), nullable=False, server_default="0") for c in score_columns],
            _timestamp("updated_at"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(op.f(f"ix_{table}_user_id"), table, ["user_id"], unique=True)

    op.create_table(
        "radar_states",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("axis_name", sa.String(length=64), nullable=False),
        sa.Column("axis_score", sa.Float(), nullable=False, server_default="0"),
        _timestamp("last_updated"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "axis_name", name="uq_radar_states_user_axis"),
    )
    op.create_index(op.f("ix_radar_states_user_id"), "radar_states", ["user_id"], unique=False)
    op.create_index(op.f("ix_radar_states_last_updated"), "radar_states", ["last_updated"], unique=False)

    op.create_table(
        "radar_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("axis_name", sa.String(length=64), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        _timestamp("recorded_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_radar_history_user_id"), "radar_history", ["user_id"], unique=False)
    op.create_index(op.f("ix_radar_history_recorded_at"), "radar_history", ["recorded_at"], unique=False)

    op.create_table(
        "governance_rules",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("axis_name", sa.String(length=64), nullable=False),
        sa.Column("operator", sa.String(length=8), nullable=False),
        sa.Column("threshold", sa.Float(), nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("description", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_governance_rules_axis_name"), "governance_rules", ["axis_name"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_governance_rules_axis_name"), table_name="governance_rules")
    op.drop_table("governance_rules")
    op.drop_index(op.f("ix_radar_history_recorded_at"), table_name="radar_history")
    op.drop_index(op.f("ix_radar_history_user_id"), table_name="radar_history")
    op.drop_table("radar_history")
    op.drop_index(op.f("ix_radar_states_last_updated"), table_name="radar_states")
    op.drop_index(op.f("ix_radar_states_user_id"), table_name="radar_states")
    op.drop_table("radar_states")
    for table in reversed(list(_DOMAIN_TABLES)):
        op.drop_index(op.f(f"ix_{table}_user_id"), table_name=table)
        op.drop_table(table)
