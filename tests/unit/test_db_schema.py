"""Schema integrity tests for the migrated registry tables."""
from __future__ import annotations

from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic import command
from alembic.config import Config

ISSUER_SCOPED_TABLES = [
    "shareholders",
    "securities",
    "market_values",
    "restrictions_templates",
    "transfers",
    "transaction_restrictions",
    "shareholder_positions",
    "transfer_requests",
    "documents",
    "split_events",
]


@pytest.fixture(scope="session")
def alembic_config(tmp_path_factory: pytest.TempPathFactory) -> Config:
    """Provide Alembic config bound to a temporary SQLite database."""

    project_root = Path(__file__).resolve().parents[2]
    db_path = tmp_path_factory.mktemp("db") / "schema.db"

    config = Config(str(project_root / "alembic.ini"))
    config.set_main_option("sqlalchemy.url", f"sqlite:///{db_path}")
    config.set_main_option("script_location", str(project_root / "migrations"))
    config.attributes["configure_logger"] = False
    return config


@pytest.fixture(scope="session")
def migrated_engine(alembic_config: Config):
    """Run migrations against SQLite and yield an engine."""

    command.upgrade(alembic_config, "head")
    engine = sa.create_engine(alembic_config.get_main_option("sqlalchemy.url"))
    try:
        yield engine
    finally:
        engine.dispose()


def test_tables_exist(migrated_engine: sa.Engine) -> None:
    tables = set(sa.inspect(migrated_engine).get_table_names())

    expected = {"issuers", "users", "roles", "issuer_users", "invited_users", "notifications", "audit_logs"}
    assert expected.union(ISSUER_SCOPED_TABLES).issubset(tables)


@pytest.mark.parametrize("table_name", ISSUER_SCOPED_TABLES)
def test_issuer_id_references_issuers(table_name: str, migrated_engine: sa.Engine) -> None:
    foreign_keys = sa.inspect(migrated_engine).get_foreign_keys(table_name)
    fk_map = {tuple(fk["constrained_columns"]): fk["referred_table"] for fk in foreign_keys}

    assert fk_map[("issuer_id",)] == "issuers"


def test_foreign_keys_enforced(migrated_engine: sa.Engine) -> None:
    inspector = sa.inspect(migrated_engine)
    fk_expectations = {
        "issuer_users": {"user_id": "users", "role_id": "roles"},
        "transfers": {
            "shareholder_id": "shareholders",
            "restriction_id": "restrictions_templates",
            "created_by": "users",
        },
        "transaction_restrictions": {"shareholder_id": "shareholders", "restriction_id": "restrictions_templates"},
        "transfer_requests": {"broker_id": "users"},
        "transfer_request_communications": {"request_id": "transfer_requests", "user_id": "users"},
        "notifications": {"user_id": "users"},
        "audit_logs": {"actor_id": "users"},
    }

    for table, expected in fk_expectations.items():
        fk_map = {
            tuple(fk["constrained_columns"]): fk["referred_table"] for fk in inspector.get_foreign_keys(table)
        }
        for column, target in expected.items():
            assert fk_map[(column,)] == target


def test_unique_constraints(migrated_engine: sa.Engine) -> None:
    inspector = sa.inspect(migrated_engine)
    unique_expectations = {
        "shareholders": {"uq_shareholders_issuer_account_number": {"issuer_id", "account_number"}},
        "securities": {"uq_securities_issuer_cusip": {"issuer_id", "cusip"}},
        "shareholder_positions": {"uq_shareholder_positions_holder_cusip": {"shareholder_id", "cusip"}},
        "transfer_requests": {"uq_transfer_requests_issuer_number": {"issuer_id", "request_number"}},
        "issuer_users": {"uq_issuer_users_assignment": {"user_id", "issuer_id", "role_id"}},
        "split_events": {"uq_split_events_issuer_type": {"issuer_id", "transaction_type"}},
    }

    for table, expected in unique_expectations.items():
        found = {
            constraint["name"]: set(constraint["column_names"])
            for constraint in inspector.get_unique_constraints(table)
        }
        for name, columns in expected.items():
            assert found[name] == columns


def test_query_indexes(migrated_engine: sa.Engine) -> None:
    inspector = sa.inspect(migrated_engine)
    index_expectations = {
        "shareholders": "ix_shareholders_issuer_id",
        "transfers": "ix_transfers_issuer_date",
        "transfer_requests": "ix_transfer_requests_broker_id",
        "notifications": "ix_notifications_user_read",
        "transfer_request_communications": "ix_transfer_request_communications_request_id",
        "audit_logs": "ix_audit_logs_issuer_id",
    }

    for table, index_name in index_expectations.items():
        indexes = {index["name"] for index in inspector.get_indexes(table)}
        assert index_name in indexes


def test_journal_quantities_must_be_positive(migrated_engine: sa.Engine) -> None:
    checks = sa.inspect(migrated_engine).get_check_constraints("transfers")

    assert "ck_transfers_share_quantity_positive" in {check["name"] for check in checks}


def test_split_request_columns(migrated_engine: sa.Engine) -> None:
    columns = {column["name"] for column in sa.inspect(migrated_engine).get_columns("transfer_requests")}

    assert {"dtc_participant_number", "dwac_submitted", "units_quantity", "warrants_cusip"} <= columns
    issuer_columns = {column["name"] for column in sa.inspect(migrated_engine).get_columns("issuers")}
    assert "split_security_type" in issuer_columns
