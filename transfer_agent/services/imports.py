"""Bulk import of journal entries from CSV or JSON files."""
from __future__ import annotations

import csv
import io
import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from transfer_agent.core.config import Settings, get_settings
from transfer_agent.db.session import serializable_transaction
from transfer_agent.models import AuditLog, Issuer, IssuerStatus, RestrictionTemplate, Security, Shareholder, Transfer
from transfer_agent.obs import TRANSFERS_POSTED_COUNTER
from transfer_agent.services.positions import UnknownTransactionTypeError, classify_direction
from transfer_agent.services.transfers import (
    IssuerNotActiveError,
    IssuerNotFoundError,
    TransferError,
    apply_position_delta,
)

logger = logging.getLogger(__name__)

_JSON_CONTENT_TYPES = {"application/json", "text/json"}
_CSV_CONTENT_TYPES = {"text/csv", "application/csv", "text/plain"}

JOURNAL_IMPORT_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "JournalImportRow",
    "type": "object",
    "properties": {
        "account_number": {"type": "string", "minLength": 1},
        "cusip": {"type": "string", "minLength": 1, "maxLength": 16},
        "transaction_type": {"type": "string", "minLength": 1},
        "share_quantity": {"type": "integer", "minimum": 1},
        "transaction_date": {"type": "string", "pattern": r"^\d{4}-\d{2}-\d{2}$"},
        "restriction_id": {"type": ["string", "null"]},
        "notes": {"type": ["string", "null"]},
    },
    "required": ["account_number", "cusip", "transaction_type", "share_quantity"],
    "additionalProperties": True,
}


class JournalImportError(TransferError):
    """Raised when any row of an import is invalid; nothing is written."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        super().__init__(f"{len(errors)} import row(s) are invalid")
        self.errors = errors


@dataclass(slots=True)
class ImportResult:
    imported: int
    transfer_ids: list[str] = field(default_factory=list)


class JournalImportService:
    """Validate and insert a batch of journal rows all-or-nothing."""

    def __init__(self, session: Session, *, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._validator = Draft202012Validator(JOURNAL_IMPORT_SCHEMA)

    def parse_rows(self, *, body: bytes, content_type: str, filename: str | None = None) -> list[dict[str, Any]]:
        name = (filename or "").lower()
        if content_type.lower() in _JSON_CONTENT_TYPES or name.endswith(".json"):
            payload = json.loads(body.decode("utf-8"))
            if isinstance(payload, dict) and "rows" in payload:
                payload = payload["rows"]
            if not isinstance(payload, list):
                raise ValueError("JSON import payload must be a list of rows")
            return [self._normalize_row(row) for row in payload]

        if content_type.lower() in _CSV_CONTENT_TYPES or name.endswith(".csv"):
            reader = csv.DictReader(io.StringIO(body.decode("utf-8-sig")))
            return [self._normalize_row(row) for row in reader]

        raise ValueError(f"Unsupported content type '{content_type}' for journal import")

    def _normalize_row(self, row: Any) -> dict[str, Any]:
        if not isinstance(row, dict):
            raise ValueError("Import rows must be objects")
        normalized: dict[str, Any] = {
            key.strip(): value.strip() if isinstance(value, str) else value
            for key, value in row.items()
            if key is not None
        }
        for optional in ("transaction_date", "restriction_id", "notes"):
            if normalized.get(optional) == "":
                normalized.pop(optional)
        quantity = normalized.get("share_quantity")
        if isinstance(quantity, str) and quantity.replace(",", "").isdigit():
            normalized["share_quantity"] = int(quantity.replace(",", ""))
        return normalized

    def validate_rows(self, issuer_id: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Return one error entry per invalid row; an empty list means the batch is clean."""

        accounts = dict(
            self._session.execute(
                select(Shareholder.account_number, Shareholder.id).where(Shareholder.issuer_id == issuer_id)
            ).all()
        )
        cusips = set(self._session.scalars(select(Security.cusip).where(Security.issuer_id == issuer_id)).all())
        restrictions = set(
            self._session.scalars(
                select(RestrictionTemplate.id).where(RestrictionTemplate.issuer_id == issuer_id)
            ).all()
        )

        invalid: list[dict[str, Any]] = []
        for index, row in enumerate(rows, start=1):
            messages = [
                self._format_error(error)
                for error in sorted(self._validator.iter_errors(row), key=lambda e: list(e.path))
            ]
            if not messages:
                if row["account_number"] not in accounts:
                    messages.append(f"account_number: unknown account '{row['account_number']}'")
                if row["cusip"] not in cusips:
                    messages.append(f"cusip: security '{row['cusip']}' is not registered")
                if row.get("restriction_id") and row["restriction_id"] not in restrictions:
                    messages.append(f"restriction_id: unknown restriction '{row['restriction_id']}'")
                try:
                    classify_direction(row["transaction_type"], strict=self._settings.strict_transaction_types)
                except UnknownTransactionTypeError as exc:
                    messages.append(f"transaction_type: {exc}")
                if "transaction_date" in row:
                    try:
                        date.fromisoformat(row["transaction_date"])
                    except ValueError:
                        messages.append(f"transaction_date: invalid date '{row['transaction_date']}'")
            if messages:
                invalid.append({"row_number": index, "row": row, "errors": messages})
        return invalid

    def import_rows(
        self,
        issuer_id: str,
        rows: list[dict[str, Any]],
        *,
        actor_id: str | None = None,
    ) -> ImportResult:
        issuer = self._session.get(Issuer, issuer_id)
        if issuer is None:
            raise IssuerNotFoundError(f"Issuer '{issuer_id}' was not found")
        if issuer.status is IssuerStatus.SUSPENDED:
            raise IssuerNotActiveError(f"Issuer '{issuer.issuer_name}' is suspended and read-only")
        if not rows:
            return ImportResult(imported=0)

        errors = self.validate_rows(issuer_id, rows)
        if errors:
            logger.warning("journal import rejected", extra={"issuer_id": issuer_id, "invalid_rows": len(errors)})
            raise JournalImportError(errors)

        accounts = dict(
            self._session.execute(
                select(Shareholder.account_number, Shareholder.id).where(Shareholder.issuer_id == issuer_id)
            ).all()
        )
        imported_at = datetime.now(UTC)
        deltas: dict[tuple[str, str], int] = defaultdict(int)
        transfers: list[Transfer] = []

        with serializable_transaction(self._session):
            for row in rows:
                shareholder_id = accounts[row["account_number"]]
                direction = classify_direction(
                    row["transaction_type"], strict=self._settings.strict_transaction_types
                )
                transfer = Transfer(
                    issuer_id=issuer_id,
                    shareholder_id=shareholder_id,
                    cusip=row["cusip"],
                    transaction_type=row["transaction_type"],
                    share_quantity=row["share_quantity"],
                    transaction_date=self._effective_date(row.get("transaction_date"), imported_at),
                    restriction_id=row.get("restriction_id"),
                    created_by=actor_id,
                    notes=row.get("notes"),
                )
                transfers.append(transfer)
                deltas[(shareholder_id, row["cusip"])] += int(direction) * row["share_quantity"]

            self._session.add_all(transfers)
            for (shareholder_id, cusip), delta in deltas.items():
                apply_position_delta(self._session, issuer_id, shareholder_id, cusip, delta)

            issuer = self._session.get(Issuer, issuer_id)
            if issuer is not None and issuer.status is IssuerStatus.PENDING:
                issuer.status = IssuerStatus.ACTIVE
            self._session.add(
                AuditLog(
                    issuer_id=issuer_id,
                    actor_id=actor_id,
                    action="journal.imported",
                    resource_type="transfer",
                    payload={"rows": len(transfers)},
                )
            )
            self._session.flush()

        TRANSFERS_POSTED_COUNTER.labels(kind="import").inc(len(transfers))
        logger.info("journal import committed", extra={"issuer_id": issuer_id, "rows": len(transfers)})
        return ImportResult(imported=len(transfers), transfer_ids=[transfer.id for transfer in transfers])

    @staticmethod
    def _effective_date(value: str | None, default: datetime) -> datetime:
        if not value:
            return default
        return datetime.combine(date.fromisoformat(value), time.min, tzinfo=UTC)

    @staticmethod
    def _format_error(error: ValidationError) -> str:
        path = "->".join(str(part) for part in error.path)
        return f"{path or '<root>'}: {error.message}"


__all__ = [
    "ImportResult",
    "JOURNAL_IMPORT_SCHEMA",
    "JournalImportError",
    "JournalImportService",
]
