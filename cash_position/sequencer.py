"""
Running Balance Sequencer

Orders entries chronologically and annotates each with the cumulative
realized and projected balance after it, for statement-style listings.
Each row equals a whole-list recomputation over its prefix.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .entries import BankAccount, DisplayStatus, LedgerEntry, resolve_display_status
from .balance import compute_balance, scope_ledger
from .dates import in_range, resolve_today
from .money import ZERO


@dataclass
class RunningBalanceRow:
    """One statement line with its running balances"""
    position: int
    entry: LedgerEntry
    realized_delta: Decimal
    projected_delta: Decimal
    cumulative_realized: Decimal
    cumulative_projected: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position,
            "entry": self.entry.to_dict(),
            "realized_delta": str(self.realized_delta),
            "projected_delta": str(self.projected_delta),
            "cumulative_realized": str(self.cumulative_realized),
            "cumulative_projected": str(self.cumulative_projected),
        }


def sort_key(entry: LedgerEntry):
    """Effective date ascending with undated entries last"""
    effective = entry.effective_date
    return (effective is None, effective or date.min)


def _deltas(entry: LedgerEntry, today: date):
    display = resolve_display_status(entry.status, entry.due_date, today)
    if display == DisplayStatus.PAID and entry.settlement_date is not None:
        return entry.signed_amount, entry.signed_amount
    if display == DisplayStatus.PENDING and entry.due_date is not None:
        return ZERO, entry.signed_amount
    # Overdue, cancelled and undated entries are listed without moving the balance
    return ZERO, ZERO


def sequence(
    entries: Iterable[LedgerEntry],
    bank_accounts: Iterable[BankAccount],
    account_scope: Optional[Iterable[str]],
    opening_balance_for_period: Decimal,
    today: Optional[date] = None,
    opening_projected: Optional[Decimal] = None,
    include_unassigned: bool = False
) -> List[RunningBalanceRow]:
    """
    Sequence scoped entries and accumulate running balances.

    Args:
        entries: Normalized ledger entries
        bank_accounts: Known bank accounts
        account_scope: Account ids to include (empty or None = all accounts)
        opening_balance_for_period: Balance before the first row
        today: Reference day for the overdue split
        opening_projected: Projected balance before the first row, when it
            differs from the realized opening (pending entries listed elsewhere)
        include_unassigned: Keep entries with no bank account when unfiltered

    Returns:
        Rows ordered by settlement date (or due date when unsettled)
    """
    today = resolve_today(today)
    scoped = scope_ledger(entries, bank_accounts, account_scope, include_unassigned)
    ordered = sorted(scoped.entries, key=sort_key)

    realized = opening_balance_for_period
    projected = opening_balance_for_period if opening_projected is None else opening_projected
    rows = []
    for position, entry in enumerate(ordered):
        realized_delta, projected_delta = _deltas(entry, today)
        realized += realized_delta
        projected += projected_delta
        rows.append(RunningBalanceRow(
            position=position,
            entry=entry,
            realized_delta=realized_delta,
            projected_delta=projected_delta,
            cumulative_realized=realized,
            cumulative_projected=projected,
        ))
    return rows


def statement(
    entries: Iterable[LedgerEntry],
    bank_accounts: Iterable[BankAccount],
    account_scope: Optional[Iterable[str]],
    period_start: Any,
    period_end: Any,
    today: Optional[date] = None,
    include_unassigned: bool = False
) -> List[RunningBalanceRow]:
    """
    Statement view for a window.

    Opens from the Balance Calculator's opening balance and lists the rows
    whose effective date falls inside the window. Pending entries due
    between today and the window start are not listed but are carried into
    the opening projected balance, so the last row closes at the
    calculator's realized and projected balances.
    """
    today = resolve_today(today)
    entries = list(entries)
    accounts = list(bank_accounts)
    balance = compute_balance(
        entries, accounts, account_scope, period_start, period_end, today,
        include_unassigned=include_unassigned
    )

    window = [
        entry for entry in entries
        if in_range(entry.effective_date, balance.period_start, balance.period_end)
    ]
    opening_projected = (
        balance.opening_balance
        + balance.inflows_pending_before_window
        - balance.outflows_pending_before_window
    )
    return sequence(
        window, accounts, account_scope, balance.opening_balance, today,
        opening_projected=opening_projected, include_unassigned=include_unassigned
    )
