from __future__ import annotations

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from tests.conftest import CUSIP


@pytest.fixture()
def base(issuer) -> str:
    return f"/api/issuers/{issuer.id}"


@pytest.fixture()
def holders(client: TestClient, auth_headers, base) -> dict[str, str]:
    ids = {}
    for account, name in (("ACC-A", "Alice Holder"), ("ACC-B", "Bob Holder")):
        response = client.post(
            f"{base}/shareholders/",
            json={"account_number": account, "full_name": name},
            headers=auth_headers,
        )
        assert response.status_code == 201, response.text
        ids[account] = response.json()["id"]
    return ids


@pytest.fixture()
def funded(client: TestClient, auth_headers, base, holders) -> dict[str, str]:
    issuance = client.post(
        f"{base}/transactions",
        json={
            "shareholder_id": holders["ACC-A"],
            "cusip": CUSIP,
            "transaction_type": "IPO",
            "share_quantity": 1000,
            "transaction_date": "2024-01-02T00:00:00Z",
        },
        headers=auth_headers,
    )
    assert issuance.status_code == 201, issuance.text
    transfer = client.post(
        f"{base}/transfers",
        json={
            "from_shareholder_id": holders["ACC-A"],
            "to_shareholder_id": holders["ACC-B"],
            "cusip": CUSIP,
            "share_quantity": 400,
            "transaction_date": "2024-02-01T00:00:00Z",
        },
        headers=auth_headers,
    )
    assert transfer.status_code == 201, transfer.text
    return holders


def test_transfer_posts_debit_and_credit(client: TestClient, auth_headers, base, funded) -> None:
    journal = client.get(f"{base}/transfers", headers=auth_headers).json()

    types = [entry["transaction_type"] for entry in journal]
    assert types[-1] == "IPO"
    assert sorted(types[:2]) == ["Transfer Credit", "Transfer Debit"]
    bob_only = client.get(f"{base}/transfers", params={"shareholder_id": funded["ACC-B"]}, headers=auth_headers)
    assert [entry["share_quantity"] for entry in bob_only.json()] == [400]


def test_insufficient_shares_is_a_conflict(client: TestClient, auth_headers, base, funded) -> None:
    response = client.post(
        f"{base}/transfers",
        json={
            "from_shareholder_id": funded["ACC-B"],
            "to_shareholder_id": funded["ACC-A"],
            "cusip": CUSIP,
            "share_quantity": 401,
        },
        headers=auth_headers,
    )

    assert response.status_code == 409
    assert response.json()["detail"]["available"] == 400
    assert response.json()["detail"]["requested"] == 401
    assert len(client.get(f"{base}/transfers", headers=auth_headers).json()) == 3


def test_invalid_postings_are_rejected(client: TestClient, auth_headers, base, funded) -> None:
    same_account = client.post(
        f"{base}/transfers",
        json={
            "from_shareholder_id": funded["ACC-A"],
            "to_shareholder_id": funded["ACC-A"],
            "cusip": CUSIP,
            "share_quantity": 1,
        },
        headers=auth_headers,
    )
    unknown_security = client.post(
        f"{base}/transactions",
        json={"shareholder_id": funded["ACC-A"], "cusip": "000000XX0", "transaction_type": "IPO", "share_quantity": 1},
        headers=auth_headers,
    )
    zero_quantity = client.post(
        f"{base}/transactions",
        json={"shareholder_id": funded["ACC-A"], "cusip": CUSIP, "transaction_type": "IPO", "share_quantity": 0},
        headers=auth_headers,
    )

    assert same_account.status_code == 400
    assert unknown_security.status_code == 404
    assert zero_quantity.status_code == 422


def test_positions_follow_the_as_of_date(client: TestClient, auth_headers, base, funded) -> None:
    url = f"{base}/shareholders/{funded['ACC-A']}/positions"

    before = client.get(url, params={"as_of": "2024-01-15"}, headers=auth_headers).json()
    after = client.get(url, params={"as_of": "2024-02-01"}, headers=auth_headers).json()

    assert before["positions"][0]["shares_outstanding"] == 1000
    assert after["positions"][0]["shares_outstanding"] == 600
    assert after["positions"][0]["security_name"] == "Common Stock"


def test_ledger_shows_running_balance(client: TestClient, auth_headers, base, funded) -> None:
    response = client.get(f"{base}/shareholders/{funded['ACC-A']}/ledger", headers=auth_headers)

    (position,) = response.json()["positions"]
    assert [line["running_balance"] for line in position["lines"]] == [1000, 600]
    assert [line["direction"] for line in position["lines"]] == [1, -1]


def test_ownership_rollup(client: TestClient, auth_headers, base, funded) -> None:
    response = client.get(f"{base}/ownership", params={"as_of": "2024-03-01"}, headers=auth_headers)

    body = response.json()
    assert body["total_shares"] == 1000
    assert body["totals_by_cusip"] == {CUSIP: 1000}
    by_account = {row["account_number"]: row for row in body["shareholders"]}
    assert Decimal(by_account["ACC-A"]["ownership_percentage"]) == Decimal("60.00")
    assert Decimal(by_account["ACC-B"]["ownership_percentage"]) == Decimal("40.00")
    assert by_account["ACC-B"]["full_name"] == "Bob Holder"

    listing = client.get(f"{base}/shareholders/", params={"cusip": CUSIP}, headers=auth_headers).json()
    assert {row["account_number"]: row["total_shares"] for row in listing} == {"ACC-A": 600, "ACC-B": 400}


def test_statements_include_market_values(client: TestClient, auth_headers, base, funded) -> None:
    price = client.post(
        f"{base}/market-values",
        json={"cusip": CUSIP, "valuation_date": "2024-01-01", "price_per_share": "2.50"},
        headers=auth_headers,
    )
    assert price.status_code == 201

    response = client.post(f"{base}/statements", json={"as_of": "2024-03-01"}, headers=auth_headers)

    assert response.status_code == 200
    statements = {statement["account_number"]: statement for statement in response.json()}
    assert set(statements) == {"ACC-A", "ACC-B"}
    alice = statements["ACC-A"]
    assert alice["issuer_name"] == "Acme Corp"
    assert alice["total_shares"] == 600
    assert Decimal(alice["total_market_value"]) == Decimal("1500.00")
    assert [entry["running_balance"] for entry in alice["activity"]] == [1000, 600]


def test_shareholders_with_history_cannot_be_deleted(client: TestClient, auth_headers, base, funded) -> None:
    response = client.delete(f"{base}/shareholders/{funded['ACC-B']}", headers=auth_headers)

    assert response.status_code == 409


def test_pending_issuer_activates_on_first_entry_but_blocks_transfers(
    client: TestClient, auth_headers
) -> None:
    issuer = client.post("/api/issuers/", json={"issuer_name": "newco"}, headers=auth_headers).json()
    base = f"/api/issuers/{issuer['id']}"
    client.post(f"{base}/securities", json={"cusip": CUSIP, "issue_name": "Common"}, headers=auth_headers)
    ids = [
        client.post(
            f"{base}/shareholders/", json={"account_number": f"N-{n}", "full_name": f"Holder {n}"}, headers=auth_headers
        ).json()["id"]
        for n in (1, 2)
    ]
    transfer = {"from_shareholder_id": ids[0], "to_shareholder_id": ids[1], "cusip": CUSIP, "share_quantity": 1}

    assert client.post(f"{base}/transfers", json=transfer, headers=auth_headers).status_code == 409

    issuance = client.post(
        f"{base}/transactions",
        json={"shareholder_id": ids[0], "cusip": CUSIP, "transaction_type": "IPO", "share_quantity": 10},
        headers=auth_headers,
    )
    assert issuance.status_code == 201
    assert client.get(base, headers=auth_headers).json()["status"] == "ACTIVE"
    assert client.post(f"{base}/transfers", json=transfer, headers=auth_headers).status_code == 201


def test_suspended_issuer_is_read_only(client: TestClient, auth_headers, base, funded) -> None:
    client.patch(base, json={"status": "SUSPENDED"}, headers=auth_headers)

    response = client.post(
        f"{base}/transactions",
        json={"shareholder_id": funded["ACC-A"], "cusip": CUSIP, "transaction_type": "IPO", "share_quantity": 5},
        headers=auth_headers,
    )

    assert response.status_code == 409
    assert client.get(f"{base}/ownership", headers=auth_headers).status_code == 200


def test_restricted_shares_and_legends(client: TestClient, auth_headers, base, holders) -> None:
    legend = client.post(
        f"{base}/restrictions/templates",
        json={"restriction_type": "144", "restriction_name": "Rule 144"},
        headers=auth_headers,
    )
    assert legend.status_code == 201
    legend_id = legend.json()["id"]

    client.post(
        f"{base}/transactions",
        json={
            "shareholder_id": holders["ACC-A"],
            "cusip": CUSIP,
            "transaction_type": "IPO",
            "share_quantity": 500,
            "restriction_id": legend_id,
            "transaction_date": "2024-01-02T00:00:00Z",
        },
        headers=auth_headers,
    )
    manual = client.post(
        f"{base}/restrictions",
        json={
            "shareholder_id": holders["ACC-A"],
            "cusip": CUSIP,
            "restricted_shares": 50,
            "restriction_date": "2024-01-03T00:00:00Z",
        },
        headers=auth_headers,
    )
    assert manual.status_code == 201

    positions = client.get(
        f"{base}/shareholders/{holders['ACC-A']}/positions", params={"as_of": "2024-01-31"}, headers=auth_headers
    ).json()["positions"]
    assert positions[0]["restricted_shares"] == 550
    assert [item["restriction_name"] for item in positions[0]["restrictions"]] == ["Rule 144"]

    client.patch(f"{base}/restrictions/templates/{legend_id}", json={"is_active": False}, headers=auth_headers)
    positions = client.get(
        f"{base}/shareholders/{holders['ACC-A']}/positions", params={"as_of": "2024-01-31"}, headers=auth_headers
    ).json()["positions"]
    assert positions[0]["restrictions"] == []


def test_csv_import(client: TestClient, auth_headers, base, holders) -> None:
    body = (
        "account_number,cusip,transaction_type,share_quantity,transaction_date\n"
        f"ACC-A,{CUSIP},IPO,300,2024-01-02\n"
        f"ACC-B,{CUSIP},IPO,200,2024-01-02\n"
    )

    response = client.post(
        f"{base}/transfers/import",
        content=body.encode("utf-8"),
        headers={**auth_headers, "Content-Type": "text/csv", "X-Upload-Filename": "journal.csv"},
    )

    assert response.status_code == 201
    assert response.json()["imported"] == 2
    ownership = client.get(f"{base}/ownership", params={"as_of": "2024-01-31"}, headers=auth_headers).json()
    assert ownership["total_shares"] == 500


def test_invalid_import_reports_rows(client: TestClient, auth_headers, base, holders) -> None:
    body = f"account_number,cusip,transaction_type,share_quantity\nACC-Z,{CUSIP},IPO,10\n"

    response = client.post(
        f"{base}/transfers/import",
        content=body.encode("utf-8"),
        headers={**auth_headers, "Content-Type": "text/csv"},
    )
    unsupported = client.post(
        f"{base}/transfers/import",
        content=b"<xml/>",
        headers={**auth_headers, "Content-Type": "application/xml"},
    )

    assert response.status_code == 422
    assert response.json()["detail"]["errors"][0]["row_number"] == 1
    assert unsupported.status_code == 400
    assert client.get(f"{base}/transfers", headers=auth_headers).json() == []


def _entry(holder: str, transaction_type: str, quantity: int, day: str) -> dict[str, object]:
    return {
        "shareholder_id": holder,
        "cusip": CUSIP,
        "transaction_type": transaction_type,
        "share_quantity": quantity,
        "transaction_date": f"{day}T00:00:00Z",
    }


def test_back_dated_debit_cannot_overdraw_later_entries(client: TestClient, auth_headers, base, holders) -> None:
    alice = holders["ACC-A"]
    for payload in (_entry(alice, "IPO", 1000, "2024-01-01"), _entry(alice, "Debit", 800, "2024-03-01")):
        assert client.post(f"{base}/transactions", json=payload, headers=auth_headers).status_code == 201

    response = client.post(
        f"{base}/transactions", json=_entry(alice, "Debit", 500, "2024-02-01"), headers=auth_headers
    )

    assert response.status_code == 409
    assert response.json()["detail"]["available"] == 200
    assert response.json()["detail"]["requested"] == 500
    ledger = client.get(f"{base}/shareholders/{alice}/ledger", headers=auth_headers).json()
    assert [line["running_balance"] for line in ledger["positions"][0]["lines"]] == [1000, 200]

    fits = client.post(f"{base}/transactions", json=_entry(alice, "Debit", 200, "2024-02-01"), headers=auth_headers)
    assert fits.status_code == 201


def test_back_dated_transfer_cannot_overdraw_later_entries(client: TestClient, auth_headers, base, funded) -> None:
    # Alice holds 1000 from January and 600 after the February transfer.
    response = client.post(
        f"{base}/transfers",
        json={
            "from_shareholder_id": funded["ACC-A"],
            "to_shareholder_id": funded["ACC-B"],
            "cusip": CUSIP,
            "share_quantity": 700,
            "transaction_date": "2024-01-15T00:00:00Z",
        },
        headers=auth_headers,
    )

    assert response.status_code == 409
    assert response.json()["detail"]["available"] == 600
    assert len(client.get(f"{base}/transfers", headers=auth_headers).json()) == 3


def test_future_debit_is_checked_against_the_final_balance(
    client: TestClient, auth_headers, base, funded
) -> None:
    response = client.post(
        f"{base}/transactions", json=_entry(funded["ACC-B"], "Debit", 401, "2024-06-01"), headers=auth_headers
    )

    assert response.status_code == 409
    assert response.json()["detail"]["available"] == 400
