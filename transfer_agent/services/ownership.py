"""Ownership rollups over derived positions."""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from transfer_agent.services.positions import PositionSet

_ZERO_PERCENT = Decimal("0.00")
_HUNDREDTH = Decimal("0.01")


def ownership_percentage(shares: int, total: int) -> Decimal:
    """Percentage of ``total`` held, rounded half-up to two decimals.

    A non-positive total yields ``0.00`` rather than dividing by zero.
    """

    if total <= 0:
        return _ZERO_PERCENT
    return (Decimal(shares) * 100 / Decimal(total)).quantize(_HUNDREDTH, rounding=ROUND_HALF_UP)


@dataclass(slots=True, frozen=True)
class ShareholderOwnership:
    shareholder_id: str
    shares_by_cusip: dict[str, int]
    total_shares: int
    ownership_percentage: Decimal
    security_percentages: dict[str, Decimal]

    @property
    def security_ids(self) -> list[str]:
        """CUSIPs with a positive holding, used by list filters."""
        return [cusip for cusip, shares in self.shares_by_cusip.items() if shares > 0]

    @property
    def has_position(self) -> bool:
        return self.total_shares > 0


@dataclass(slots=True, frozen=True)
class OwnershipSummary:
    issuer_id: str
    totals_by_cusip: dict[str, int]
    total_shares: int
    shareholders: list[ShareholderOwnership]
    by_shareholder: dict[str, ShareholderOwnership] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "by_shareholder", {entry.shareholder_id: entry for entry in self.shareholders})

    def for_shareholder(self, shareholder_id: str) -> ShareholderOwnership | None:
        return self.by_shareholder.get(shareholder_id)


def summarize_ownership(position_set: PositionSet) -> OwnershipSummary:
    """Roll current holdings up to per-security and issuer-wide ownership."""

    holdings = position_set.holdings()
    totals_by_cusip: dict[str, int] = defaultdict(int)
    per_holder: dict[str, dict[str, int]] = defaultdict(dict)
    for position in holdings:
        totals_by_cusip[position.cusip] += position.shares_outstanding
        per_holder[position.shareholder_id][position.cusip] = position.shares_outstanding

    issuer_total = sum(totals_by_cusip.values())
    shareholders = []
    for shareholder_id, shares_by_cusip in per_holder.items():
        held = sum(shares_by_cusip.values())
        shareholders.append(
            ShareholderOwnership(
                shareholder_id=shareholder_id,
                shares_by_cusip=dict(shares_by_cusip),
                total_shares=held,
                ownership_percentage=ownership_percentage(held, issuer_total),
                security_percentages={
                    cusip: ownership_percentage(shares, totals_by_cusip[cusip])
                    for cusip, shares in shares_by_cusip.items()
                },
            )
        )

    shareholders.sort(key=lambda entry: (-entry.total_shares, entry.shareholder_id))
    return OwnershipSummary(
        issuer_id=position_set.issuer_id,
        totals_by_cusip=dict(totals_by_cusip),
        total_shares=issuer_total,
        shareholders=shareholders,
    )


__all__ = [
    "OwnershipSummary",
    "ShareholderOwnership",
    "ownership_percentage",
    "summarize_ownership",
]
