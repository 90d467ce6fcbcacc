from __future__ import annotations

import json

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from transfer_agent.models import Issuer, IssuerStatus, Shareholder, ShareholderPosition, Transfer
from transfer_agent.services.imports import JournalImportError, JournalImportService
from transfer_agent.services.transfers import IssuerNotActiveError
from tests.conftest import CUSIP

CSV_BODY = (
    "\ufeffaccount_number,cusip,transaction_type,share_quantity,transaction_date,notes\n"
    f"ACC-1,{CUSIP},IPO,\"1,000\",2024-01-02,initial issuance\n"
    f"ACC-1,{CUSIP},Debit,250,2024-01-05,\n"
    f"ACC-2,{CUSIP},Credit,40,,\n"
).encode("utf-8")


@pytest.fixture()
def holders(db_session: Session, issuer: Issuer) -> dict[str, Shareholder]:
    rows = {
        number: Shareholder(issuer_id=issuer.id, account_number=number, full_name=f"Holder {number}")
        for number in ("ACC-1", "ACC-2")
    }
    db_session.add_all(rows.values())
    db_session.commit()
    return rows


def test_parse_csv_strips_bom_and_thousands_separators(db_session: Session) -> None:
    rows = JournalImportService(db_session).parse_rows(body=CSV_BODY, content_type="text/csv")

    assert len(rows) == 3
    assert rows[0]["account_number"] == "ACC-1"
    assert rows[0]["share_quantity"] == 1000
    assert "notes" not in rows[1]
    assert "transaction_date" not in rows[2]


def test_parse_json_accepts_wrapped_rows(db_session: Session) -> None:
    body = json.dumps(
        {"rows": [{"account_number": "ACC-1", "cusip": CUSIP, "transaction_type": "IPO", "share_quantity": 5}]}
    ).encode("utf-8")

    rows = JournalImportService(db_session).parse_rows(
        body=body, content_type="application/octet-stream", filename="batch.JSON"
    )

    assert rows == [{"account_number": "ACC-1", "cusip": CUSIP, "transaction_type": "IPO", "share_quantity": 5}]


def test_parse_rejects_unknown_formats(db_session: Session) -> None:
    service = JournalImportService(db_session)

    with pytest.raises(ValueError):
        service.parse_rows(body=b"<rows/>", content_type="application/xml")
    with pytest.raises(ValueError):
        service.parse_rows(body=b'{"account_number": "ACC-1"}', content_type="application/json")


def test_validate_rows_reports_every_problem(db_session: Session, issuer: Issuer, holders) -> None:
    rows = [
        {"account_number": "ACC-1", "cusip": CUSIP, "transaction_type": "IPO", "share_quantity": 10},
        {"account_number": "ACC-9", "cusip": "999999ZZ9", "transaction_type": "IPO", "share_quantity": 10},
        {"account_number": "ACC-1", "cusip": CUSIP, "transaction_type": "IPO", "share_quantity": "ten"},
        {
            "account_number": "ACC-2",
            "cusip": CUSIP,
            "transaction_type": "IPO",
            "share_quantity": 1,
            "transaction_date": "2024-02-30",
        },
    ]

    errors = JournalImportService(db_session).validate_rows(issuer.id, rows)

    assert [error["row_number"] for error in errors] == [2, 3, 4]
    assert errors[0]["errors"] == [
        "account_number: unknown account 'ACC-9'",
        "cusip: security '999999ZZ9' is not registered",
    ]
    assert errors[1]["errors"][0].startswith("share_quantity:")
    assert errors[2]["errors"] == ["transaction_date: invalid date '2024-02-30'"]


def test_import_aggregates_snapshot_and_activates_issuer(
    db_session: Session, issuer: Issuer, holders: dict[str, Shareholder]
) -> None:
    issuer.status = IssuerStatus.PENDING
    db_session.commit()
    service = JournalImportService(db_session)

    result = service.import_rows(
        issuer.id, service.parse_rows(body=CSV_BODY, content_type="text/csv"), actor_id=None
    )

    assert result.imported == 3
    assert len(result.transfer_ids) == 3
    snapshots = {
        row.shareholder_id: row.shares_owned for row in db_session.scalars(select(ShareholderPosition)).all()
    }
    assert snapshots == {holders["ACC-1"].id: 750, holders["ACC-2"].id: 40}
    db_session.refresh(issuer)
    assert issuer.status is IssuerStatus.ACTIVE


def test_invalid_batch_writes_nothing(db_session: Session, issuer: Issuer, holders) -> None:
    rows = [
        {"account_number": "ACC-1", "cusip": CUSIP, "transaction_type": "IPO", "share_quantity": 10},
        {"account_number": "missing", "cusip": CUSIP, "transaction_type": "IPO", "share_quantity": 10},
    ]

    with pytest.raises(JournalImportError) as excinfo:
        JournalImportService(db_session).import_rows(issuer.id, rows)

    assert excinfo.value.errors[0]["row_number"] == 2
    assert db_session.scalar(select(func.count(Transfer.id))) == 0


def test_suspended_issuer_rejects_imports(db_session: Session, issuer: Issuer, holders) -> None:
    issuer.status = IssuerStatus.SUSPENDED
    db_session.commit()

    with pytest.raises(IssuerNotActiveError):
        JournalImportService(db_session).import_rows(
            issuer.id,
            [{"account_number": "ACC-1", "cusip": CUSIP, "transaction_type": "IPO", "share_quantity": 10}],
        )
