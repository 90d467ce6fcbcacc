"""Unit split ratios, broker split requests and request comments."""
from __future__ import annotations

from collections.abc import Iterable

import sqlalchemy as sa
from alembic import op

revision = "20250315_01"
down_revision = "20250301_01"
branch_labels = None
depends_on: Iterable[str] | None = None

SPLIT_REQUEST_COLUMNS = (
    "dtc_participant_number",
    "dwac_submitted",
    "units_quantity",
    "class_a_quantity",
    "warrants_quantity",
    "units_cusip",
    "class_a_cusip",
    "warrants_cusip",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:  # noqa: D401
    """Add split ratios, split request details and request comments."""

    with op.batch_alter_table("issuers") as batch:
        batch.add_column(sa.Column("split_security_type", sa.String(length=16)))

    op.create_table(
        "split_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "issuer_id", sa.String(length=36), sa.ForeignKey("issuers.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("transaction_type", sa.String(length=64), nullable=False, server_default="separation"),
        sa.Column("class_a_ratio", sa.Numeric(12, 6), nullable=False),
        sa.Column("rights_ratio", sa.Numeric(12, 6), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("issuer_id", "transaction_type", name="uq_split_events_issuer_type"),
    )

    with op.batch_alter_table("transfer_requests") as batch:
        batch.add_column(sa.Column("dtc_participant_number", sa.String(length=4)))
        batch.add_column(sa.Column("dwac_submitted", sa.Boolean(), nullable=False, server_default=sa.false()))
        batch.add_column(sa.Column("units_quantity", sa.Integer()))
        batch.add_column(sa.Column("class_a_quantity", sa.Integer()))
        batch.add_column(sa.Column("warrants_quantity", sa.Integer()))
        batch.add_column(sa.Column("units_cusip", sa.String(length=16)))
        batch.add_column(sa.Column("class_a_cusip", sa.String(length=16)))
        batch.add_column(sa.Column("warrants_cusip", sa.String(length=16)))

    op.create_table(
        "transfer_request_communications",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "request_id",
            sa.String(length=36),
            sa.ForeignKey("transfer_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_internal", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index(
        "ix_transfer_request_communications_request_id", "transfer_request_communications", ["request_id"]
    )


def downgrade() -> None:  # noqa: D401
    """Remove split ratios, split request details and request comments."""

    op.drop_index("ix_transfer_request_communications_request_id", table_name="transfer_request_communications")
    op.drop_table("transfer_request_communications")
    with op.batch_alter_table("transfer_requests") as batch:
        for column_name in reversed(SPLIT_REQUEST_COLUMNS):
            batch.drop_column(column_name)
    op.drop_table("split_events")
    with op.batch_alter_table("issuers") as batch:
        batch.drop_column("split_security_type")
