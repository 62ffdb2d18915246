"""Scans and vulnerabilities tables.

Revision ID: 20261001000000
Revises:
Create Date: 2026-10-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261001000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "scans",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("repository_id", sa.String(length=255), nullable=False),
        sa.Column("triggered_by", sa.String(length=255), nullable=False, server_default="system"),
        sa.Column("scan_type", sa.String(length=32), nullable=False, server_default="FULL"),
        sa.Column("commit_sha", sa.String(length=64), nullable=True),
        sa.Column("branch", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="QUEUED"),
        sa.Column("total_findings", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("critical_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("high_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("medium_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("low_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("secure_coding_score", sa.Float(), nullable=True),
        sa.Column("risk_score", sa.Float(), nullable=True),
        sa.Column("should_block_merge", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("exploit_validator_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("exploit_scan_id", sa.String(length=255), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_scans_repository_id"), "scans", ["repository_id"], unique=False)
    op.create_index(op.f("ix_scans_status"), "scans", ["status"], unique=False)
    op.create_index(op.f("ix_scans_created_at"), "scans", ["created_at"], unique=False)

    op.create_table(
        "vulnerabilities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("scan_id", sa.Integer(), nullable=False),
        sa.Column("repository_id", sa.String(length=255), nullable=False),
        sa.Column("file_path", sa.String(length=2048), nullable=False),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column("end_line", sa.Integer(), nullable=True),
        sa.Column("code_snippet", sa.Text(), nullable=False, server_default=""),
        sa.Column("vulnerability_type", sa.String(length=128), nullable=False),
        sa.Column("severity", sa.String(length=16), nullable=False),
        sa.Column("confidence_score", sa.Float(), nullable=False),
        sa.Column("source", sa.Text(), nullable=False, server_default=""),
        sa.Column("sink", sa.Text(), nullable=False, server_default=""),
        sa.Column("data_flow_path", sa.Text(), nullable=False, server_default=""),
        sa.Column("ai_exploitable", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("ai_severity", sa.String(length=16), nullable=False, server_default="INFO"),
        sa.Column("ai_reasoning", sa.Text(), nullable=False, server_default=""),
        sa.Column("ai_patch", sa.Text(), nullable=False, server_default=""),
        sa.Column("ai_confidence", sa.Float(), nullable=False, server_default="0"),
        sa.Column("exploit_confirmed", sa.Boolean(), nullable=True),
        sa.Column("exploit_details", sa.Text(), nullable=True),
        sa.Column("validation_source", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="OPEN"),
        sa.Column("dismissed_by", sa.String(length=255), nullable=True),
        sa.Column("dismissed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["scan_id"], ["scans.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_vulnerabilities_scan_id"), "vulnerabilities", ["scan_id"], unique=False)
    op.create_index(
        op.f("ix_vulnerabilities_repository_id"), "vulnerabilities", ["repository_id"], unique=False
    )
    op.create_index(op.f("ix_vulnerabilities_severity"), "vulnerabilities", ["severity"], unique=False)
    op.create_index(op.f("ix_vulnerabilities_status"), "vulnerabilities", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_vulnerabilities_status"), table_name="vulnerabilities")
    op.drop_index(op.f("ix_vulnerabilities_severity"), table_name="vulnerabilities")
    op.drop_index(op.f("ix_vulnerabilities_repository_id"), table_name="vulnerabilities")
    op.drop_index(op.f("ix_vulnerabilities_scan_id"), table_name="vulnerabilities")
    op.drop_table("vulnerabilities")
    op.drop_index(op.f("ix_scans_created_at"), table_name="scans")
    op.drop_index(op.f("ix_scans_status"), table_name="scans")
    op.drop_index(op.f("ix_scans_repository_id"), table_name="scans")
    op.drop_table("scans")
