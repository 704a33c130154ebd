"""
Balance Calculator

Turns a normalized snapshot of ledger entries and bank accounts into opening,
realized and projected balances for an inclusive date window, for one account
or aggregated over a set of accounts.

Every surface that shows a balance (statement, daily cash flow, audit view)
goes through this module. Pending entries that are already overdue never
contribute to the projected balance.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple
from enum import Enum

from .entries import (
    BankAccount, DisplayStatus, Direction, EntryStatus, LedgerEntry, resolve_display_status
)
from .dates import resolve_today, to_date
from .money import ZERO
from .exceptions import InconsistentSnapshot
from .logging_config import get_logger

logger = get_logger("cashpos.balance")


class Bucket(Enum):
    """The single place an entry lands in for one computation"""
    SETTLED_BEFORE = "settled_before"                 # Part of the opening balance
    SETTLED_IN_PERIOD = "settled_in_period"
    SETTLED_AFTER = "settled_after"
    PENDING_BEFORE_WINDOW = "pending_before_window"   # today <= due < period_start
    PENDING_IN_WINDOW = "pending_in_window"
    PENDING_OVERDUE = "pending_overdue"               # Never projected
    PENDING_BEYOND = "pending_beyond"                 # Due after period_end
    CANCELLED = "cancelled"
    UNDATED = "undated"


PROJECTED_BUCKETS = frozenset({Bucket.PENDING_BEFORE_WINDOW, Bucket.PENDING_IN_WINDOW})


def classify(entry: LedgerEntry, period_start: date, period_end: date, today: date) -> Bucket:
    """
    Place one entry in exactly one bucket.

    The pending/overdue split is recomputed against the given today through
    the shared display-status resolver, so a snapshot normalized on another
    day still classifies consistently.
    """
    display = resolve_display_status(entry.status, entry.due_date, today)

    if display == DisplayStatus.CANCELLED:
        return Bucket.CANCELLED

    if display == DisplayStatus.PAID:
        settled = entry.settlement_date
        if settled is None:
            return Bucket.UNDATED
        if settled < period_start:
            return Bucket.SETTLED_BEFORE
        if settled > period_end:
            return Bucket.SETTLED_AFTER
        return Bucket.SETTLED_IN_PERIOD

    due = entry.due_date
    if due is None:
        return Bucket.UNDATED
    if display == DisplayStatus.OVERDUE:
        return Bucket.PENDING_OVERDUE
    if due > period_end:
        return Bucket.PENDING_BEYOND
    if due < period_start:
        return Bucket.PENDING_BEFORE_WINDOW
    return Bucket.PENDING_IN_WINDOW


@dataclass
class SnapshotAnomaly:
    """Data problem found while computing a snapshot, reported to the caller"""
    kind: str
    message: str
    entry_id: Optional[str] = None
    bank_account_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "entry_id": self.entry_id,
            "bank_account_id": self.bank_account_id,
        }


@dataclass
class ScopedLedger:
    """Accounts and entries that belong to one account scope"""
    accounts: List[BankAccount]
    entries: List[LedgerEntry]
    anomalies: List[SnapshotAnomaly] = field(default_factory=list)
    unfiltered: bool = True

    @property
    def account_ids(self) -> Tuple[str, ...]:
        return tuple(account.id for account in self.accounts)

    @property
    def accounts_opening_balance(self) -> Decimal:
        total = ZERO
        for account in self.accounts:
            total += account.opening_balance
        return total


def _report(anomalies: List[SnapshotAnomaly], anomaly: SnapshotAnomaly, strict: bool) -> None:
    if strict:
        raise InconsistentSnapshot(anomaly.message, entry_id=anomaly.entry_id)
    logger.warning(anomaly.message)
    anomalies.append(anomaly)


def scope_ledger(
    entries: Iterable[LedgerEntry],
    bank_accounts: Iterable[BankAccount],
    account_scope: Optional[Iterable[str]] = None,
    include_unassigned: bool = False,
    strict: bool = False
) -> ScopedLedger:
    """
    Select the accounts and entries a computation runs over.

    An empty or missing scope selects every known account. Entries without a
    bank account are kept only when include_unassigned is set and the scope is
    unfiltered. Entries pointing at an unknown account are excluded and
    reported. Entries settled before their account's opening date are already
    part of its opening balance and are skipped.

    Raises:
        InconsistentSnapshot: In strict mode, instead of reporting an anomaly
    """
    known = {}
    for account in bank_accounts:
        known[account.id] = account

    requested = list(account_scope or [])
    unfiltered = not requested
    anomalies: List[SnapshotAnomaly] = []

    if unfiltered:
        scoped_ids = set(known)
    else:
        scoped_ids = set()
        for account_id in requested:
            if account_id in known:
                scoped_ids.add(account_id)
            else:
                _report(anomalies, SnapshotAnomaly(
                    kind="unknown_scope_account",
                    message=f"Account {account_id} in scope is not a known bank account",
                    bank_account_id=account_id,
                ), strict)

    # Keep the caller's account order
    accounts = [account for account in known.values() if account.id in scoped_ids]

    selected = []
    for entry in entries:
        account_id = entry.bank_account_id
        if account_id is None:
            if include_unassigned and unfiltered:
                selected.append(entry)
            continue

        if account_id not in known:
            if unfiltered or account_id in requested:
                _report(anomalies, SnapshotAnomaly(
                    kind="unknown_account",
                    message=f"Entry {entry.id} references unknown bank account {account_id}",
                    entry_id=entry.id,
                    bank_account_id=account_id,
                ), strict)
            continue

        if account_id not in scoped_ids:
            continue

        opening_date = known[account_id].opening_date
        if (entry.display_status == DisplayStatus.PAID and opening_date is not None
                and entry.settlement_date is not None and entry.settlement_date < opening_date):
            continue

        selected.append(entry)

    return ScopedLedger(accounts=accounts, entries=selected, anomalies=anomalies, unfiltered=unfiltered)


@dataclass
class BalanceSnapshot:
    """Computed balances for one scope and window; never persisted"""
    scope: Tuple[str, ...]
    aggregate: bool
    period_start: date
    period_end: date
    today: date
    opening_balance: Decimal = ZERO
    realized_balance: Decimal = ZERO
    projected_balance: Decimal = ZERO
    total_inflows_realized: Decimal = ZERO
    total_outflows_realized: Decimal = ZERO
    total_inflows_pending: Decimal = ZERO
    total_outflows_pending: Decimal = ZERO
    accounts_opening_balance: Decimal = ZERO
    inflows_settled_before: Decimal = ZERO
    outflows_settled_before: Decimal = ZERO
    inflows_pending_before_window: Decimal = ZERO
    outflows_pending_before_window: Decimal = ZERO
    inflows_overdue: Decimal = ZERO
    outflows_overdue: Decimal = ZERO
    entry_count: int = 0
    anomalies: List[SnapshotAnomaly] = field(default_factory=list)

    @property
    def total_inflows(self) -> Decimal:
        """Realized plus pending inflows in the window"""
        return self.total_inflows_realized + self.total_inflows_pending

    @property
    def total_outflows(self) -> Decimal:
        return self.total_outflows_realized + self.total_outflows_pending

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scope": list(self.scope),
            "aggregate": self.aggregate,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "today": self.today.isoformat(),
            "opening_balance": str(self.opening_balance),
            "realized_balance": str(self.realized_balance),
            "projected_balance": str(self.projected_balance),
            "total_inflows_realized": str(self.total_inflows_realized),
            "total_outflows_realized": str(self.total_outflows_realized),
            "total_inflows_pending": str(self.total_inflows_pending),
            "total_outflows_pending": str(self.total_outflows_pending),
            "total_inflows": str(self.total_inflows),
            "total_outflows": str(self.total_outflows),
            "accounts_opening_balance": str(self.accounts_opening_balance),
            "inflows_settled_before": str(self.inflows_settled_before),
            "outflows_settled_before": str(self.outflows_settled_before),
            "inflows_pending_before_window": str(self.inflows_pending_before_window),
            "outflows_pending_before_window": str(self.outflows_pending_before_window),
            "inflows_overdue": str(self.inflows_overdue),
            "outflows_overdue": str(self.outflows_overdue),
            "entry_count": self.entry_count,
            "anomalies": [anomaly.to_dict() for anomaly in self.anomalies],
        }


def _window(period_start: Any, period_end: Any) -> Tuple[date, date]:
    start = to_date(period_start)
    end = to_date(period_end)
    if start is None or end is None:
        raise ValueError("period_start and period_end must be dates")
    if start > end:
        raise ValueError(f"period_start {start} is after period_end {end}")
    return start, end


def compute_balance(
    entries: Iterable[LedgerEntry],
    bank_accounts: Iterable[BankAccount],
    account_scope: Optional[Iterable[str]],
    period_start: Any,
    period_end: Any,
    today: Optional[date] = None,
    include_unassigned: bool = False,
    strict: bool = False
) -> BalanceSnapshot:
    """
    Compute opening, realized and projected balances for a window.

    opening   = scoped opening balances + settled before the window
    realized  = opening + settled inside the window
    projected = realized + pending with today <= due <= period_end

    Args:
        entries: Normalized ledger entries
        bank_accounts: Known bank accounts
        account_scope: Account ids to include (empty or None = all accounts)
        period_start: First day of the window (inclusive)
        period_end: Last day of the window (inclusive)
        today: Reference day for the overdue split
        include_unassigned: Count entries with no bank account when unfiltered
        strict: Raise InconsistentSnapshot instead of reporting anomalies

    Returns:
        BalanceSnapshot

    Raises:
        ValueError: If the window is missing or inverted
    """
    start, end = _window(period_start, period_end)
    today = resolve_today(today)
    scoped = scope_ledger(entries, bank_accounts, account_scope, include_unassigned, strict)

    snapshot = BalanceSnapshot(
        scope=scoped.account_ids,
        aggregate=len(scoped.account_ids) != 1 or scoped.unfiltered,
        period_start=start,
        period_end=end,
        today=today,
        accounts_opening_balance=scoped.accounts_opening_balance,
        anomalies=list(scoped.anomalies),
    )

    for entry in scoped.entries:
        if entry.status != EntryStatus.PAID and entry.settlement_date is not None:
            _report(snapshot.anomalies, SnapshotAnomaly(
                kind="open_with_settlement_date",
                message=f"Open entry {entry.id} carries settlement date {entry.settlement_date}",
                entry_id=entry.id,
                bank_account_id=entry.bank_account_id,
            ), strict)
        bucket = classify(entry, start, end, today)
        inflow = entry.direction == Direction.INFLOW
        amount = entry.amount

        if bucket == Bucket.SETTLED_BEFORE:
            if inflow:
                snapshot.inflows_settled_before += amount
            else:
                snapshot.outflows_settled_before += amount
        elif bucket == Bucket.SETTLED_IN_PERIOD:
            if inflow:
                snapshot.total_inflows_realized += amount
            else:
                snapshot.total_outflows_realized += amount
        elif bucket in PROJECTED_BUCKETS:
            if inflow:
                snapshot.total_inflows_pending += amount
            else:
                snapshot.total_outflows_pending += amount
            if bucket == Bucket.PENDING_BEFORE_WINDOW:
                if inflow:
                    snapshot.inflows_pending_before_window += amount
                else:
                    snapshot.outflows_pending_before_window += amount
        elif bucket == Bucket.PENDING_OVERDUE:
            if inflow:
                snapshot.inflows_overdue += amount
            else:
                snapshot.outflows_overdue += amount
        elif bucket == Bucket.UNDATED and entry.display_status == DisplayStatus.PAID:
            _report(snapshot.anomalies, SnapshotAnomaly(
                kind="settled_without_date",
                message=f"Settled entry {entry.id} has no settlement date",
                entry_id=entry.id,
                bank_account_id=entry.bank_account_id,
            ), strict)
            continue
        else:
            continue
        snapshot.entry_count += 1

    snapshot.opening_balance = (
        snapshot.accounts_opening_balance
        + snapshot.inflows_settled_before
        - snapshot.outflows_settled_before
    )
    snapshot.realized_balance = (
        snapshot.opening_balance
        + snapshot.total_inflows_realized
        - snapshot.total_outflows_realized
    )
    snapshot.projected_balance = (
        snapshot.realized_balance
        + snapshot.total_inflows_pending
        - snapshot.total_outflows_pending
    )

    logger.debug(
        "Balance for %s [%s, %s]: opening=%s realized=%s projected=%s",
        ",".join(snapshot.scope) or "-", start, end,
        snapshot.opening_balance, snapshot.realized_balance, snapshot.projected_balance
    )
    return snapshot


def compute_account_balances(
    entries: Iterable[LedgerEntry],
    bank_accounts: Iterable[BankAccount],
    period_start: Any,
    period_end: Any,
    today: Optional[date] = None,
    account_scope: Optional[Iterable[str]] = None,
    strict: bool = False
) -> Dict[str, BalanceSnapshot]:
    """One single-account snapshot per account in scope, keyed by account id"""
    entries = list(entries)
    accounts = list(bank_accounts)
    scoped = scope_ledger([], accounts, account_scope, strict=strict)
    return {
        account_id: compute_balance(entries, accounts, [account_id], period_start, period_end, today, strict=strict)
        for account_id in scoped.account_ids
    }
