"""Initial registry schema."""
from __future__ import annotations

from collections.abc import Iterable

import sqlalchemy as sa
from alembic import op

revision = "20250301_01"
down_revision = None
branch_labels = None
depends_on: Iterable[str] | None = None

ENUM_NAMES = ("transfer_request_status", "user_status", "shareholder_type", "issuer_status")


def _drop_enum(name: str) -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute(sa.text(f"DROP TYPE IF EXISTS {name}"))


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _issuer_fk() -> sa.Column:
    return sa.Column(
        "issuer_id", sa.String(length=36), sa.ForeignKey("issuers.id", ondelete="CASCADE"), nullable=False
    )


def upgrade() -> None:  # noqa: D401
    """Create registry tables and constraints."""

    issuer_status = sa.Enum("ACTIVE", "PENDING", "SUSPENDED", name="issuer_status")
    shareholder_type = sa.Enum("INDIVIDUAL", "INSTITUTION", name="shareholder_type")
    user_status = sa.Enum("ACTIVE", "INVITED", "DISABLED", name="user_status")
    request_status = sa.Enum("PENDING", "APPROVED", "REJECTED", name="transfer_request_status")
    for enum_type in (issuer_status, shareholder_type, user_status, request_status):
        enum_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "issuers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("issuer_name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=255)),
        sa.Column("description", sa.Text()),
        sa.Column("ticker_symbol", sa.String(length=16)),
        sa.Column("status", issuer_status, nullable=False, server_default="PENDING"),
        *_timestamps(),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255)),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("is_super_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", user_status, nullable=False, server_default="ACTIVE"),
        *_timestamps(),
    )

    op.create_table(
        "roles",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("role_name", sa.String(length=32), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=64)),
    )

    op.create_table(
        "issuer_users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("issuer_id", sa.String(length=36), sa.ForeignKey("issuers.id", ondelete="CASCADE")),
        sa.Column("role_id", sa.String(length=36), sa.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "issuer_id", "role_id", name="uq_issuer_users_assignment"),
    )
    op.create_index("ix_issuer_users_issuer_id", "issuer_users", ["issuer_id"])

    op.create_table(
        "invited_users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=255)),
        sa.Column("issuer_id", sa.String(length=36), sa.ForeignKey("issuers.id", ondelete="CASCADE")),
        sa.Column("role_id", sa.String(length=36), sa.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("invited_by", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL")),
        *_timestamps(),
    )
    op.create_index("ix_invited_users_email", "invited_users", ["email"])

    op.create_table(
        "shareholders",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _issuer_fk(),
        sa.Column("account_number", sa.String(length=64), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320)),
        sa.Column("phone_number", sa.String(length=32)),
        sa.Column("tax_id", sa.String(length=32)),
        sa.Column("type", shareholder_type, nullable=False, server_default="INDIVIDUAL"),
        sa.Column("address", sa.JSON()),
        *_timestamps(),
        sa.UniqueConstraint("issuer_id", "account_number", name="uq_shareholders_issuer_account_number"),
    )
    op.create_index("ix_shareholders_issuer_id", "shareholders", ["issuer_id"])
    op.create_index("ix_shareholders_email", "shareholders", ["email"])

    op.create_table(
        "securities",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _issuer_fk(),
        sa.Column("cusip", sa.String(length=16), nullable=False),
        sa.Column("issue_name", sa.String(length=255), nullable=False),
        sa.Column("class_name", sa.String(length=128)),
        *_timestamps(),
        sa.UniqueConstraint("issuer_id", "cusip", name="uq_securities_issuer_cusip"),
    )
    op.create_index("ix_securities_issuer_id", "securities", ["issuer_id"])

    op.create_table(
        "market_values",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _issuer_fk(),
        sa.Column("cusip", sa.String(length=16), nullable=False),
        sa.Column("valuation_date", sa.Date(), nullable=False),
        sa.Column("price_per_share", sa.Numeric(18, 4), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("issuer_id", "cusip", "valuation_date", name="uq_market_values_cusip_date"),
    )
    op.create_index("ix_market_values_issuer_id", "market_values", ["issuer_id"])

    op.create_table(
        "restrictions_templates",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _issuer_fk(),
        sa.Column("restriction_type", sa.String(length=64), nullable=False),
        sa.Column("restriction_name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_restrictions_templates_issuer_id", "restrictions_templates", ["issuer_id"])

    op.create_table(
        "transfers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _issuer_fk(),
        sa.Column(
            "shareholder_id",
            sa.String(length=36),
            sa.ForeignKey("shareholders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("cusip", sa.String(length=16), nullable=False),
        sa.Column("transaction_type", sa.String(length=64), nullable=False),
        sa.Column("share_quantity", sa.Integer(), nullable=False),
        sa.Column(
            "restriction_id",
            sa.String(length=36),
            sa.ForeignKey("restrictions_templates.id", ondelete="SET NULL"),
        ),
        sa.Column("transaction_date", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("created_by", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
        sa.CheckConstraint("share_quantity > 0", name="ck_transfers_share_quantity_positive"),
    )
    op.create_index("ix_transfers_issuer_date", "transfers", ["issuer_id", "transaction_date"])
    op.create_index("ix_transfers_shareholder_cusip", "transfers", ["shareholder_id", "cusip"])

    op.create_table(
        "transaction_restrictions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _issuer_fk(),
        sa.Column(
            "shareholder_id",
            sa.String(length=36),
            sa.ForeignKey("shareholders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("cusip", sa.String(length=16), nullable=False),
        sa.Column(
            "restriction_id",
            sa.String(length=36),
            sa.ForeignKey("restrictions_templates.id", ondelete="SET NULL"),
        ),
        sa.Column("restricted_shares", sa.Integer(), nullable=False),
        sa.Column("restriction_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
        sa.CheckConstraint("restricted_shares > 0", name="ck_transaction_restrictions_shares_positive"),
    )
    op.create_index(
        "ix_transaction_restrictions_issuer_date", "transaction_restrictions", ["issuer_id", "restriction_date"]
    )

    op.create_table(
        "shareholder_positions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _issuer_fk(),
        sa.Column(
            "shareholder_id",
            sa.String(length=36),
            sa.ForeignKey("shareholders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("cusip", sa.String(length=16), nullable=False),
        sa.Column("shares_owned", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("shareholder_id", "cusip", name="uq_shareholder_positions_holder_cusip"),
    )
    op.create_index("ix_shareholder_positions_issuer_id", "shareholder_positions", ["issuer_id"])

    op.create_table(
        "transfer_requests",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _issuer_fk(),
        sa.Column("broker_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("request_number", sa.Integer(), nullable=False),
        sa.Column("request_type", sa.String(length=64), nullable=False),
        sa.Column("shareholder_name", sa.String(length=255), nullable=False),
        sa.Column("account_number", sa.String(length=64)),
        sa.Column("cusip", sa.String(length=16)),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("security_type", sa.String(length=64)),
        sa.Column("priority", sa.String(length=16), nullable=False, server_default="normal"),
        sa.Column("status", request_status, nullable=False, server_default="PENDING"),
        sa.Column("request_purpose", sa.Text()),
        sa.Column("special_instructions", sa.Text()),
        sa.Column("status_note", sa.Text()),
        *_timestamps(),
        sa.UniqueConstraint("issuer_id", "request_number", name="uq_transfer_requests_issuer_number"),
    )
    op.create_index("ix_transfer_requests_broker_id", "transfer_requests", ["broker_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("entity_type", sa.String(length=64)),
        sa.Column("entity_id", sa.String(length=36)),
        sa.Column("action_url", sa.String(length=512)),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "is_read"])

    op.create_table(
        "documents",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _issuer_fk(),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("file_url", sa.String(length=1024), nullable=False),
        sa.Column("content_type", sa.String(length=128)),
        sa.Column("restricted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("uploaded_by", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL")),
        *_timestamps(),
    )
    op.create_index("ix_documents_issuer_id", "documents", ["issuer_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _issuer_fk(),
        sa.Column("actor_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("resource_type", sa.String(length=128), nullable=False),
        sa.Column("resource_id", sa.String(length=128)),
        sa.Column("payload", sa.JSON()),
        sa.Column("ip_address", sa.String(length=64)),
        *_timestamps(),
    )
    op.create_index("ix_audit_logs_issuer_id", "audit_logs", ["issuer_id"])


def downgrade() -> None:  # noqa: D401
    """Drop all registry tables."""

    for table_name in (
        "audit_logs",
        "documents",
        "notifications",
        "transfer_requests",
        "shareholder_positions",
        "transaction_restrictions",
        "transfers",
        "restrictions_templates",
        "market_values",
        "securities",
        "shareholders",
        "invited_users",
        "issuer_users",
        "roles",
        "users",
        "issuers",
    ):
        op.drop_table(table_name)

    for enum_name in ENUM_NAMES:
        _drop_enum(enum_name)
