"""
Daily Cash Flow

Day-by-day breakdown of a window: realized movements on the day they were
settled, projected movements on the day they fall due (from today on).
Each day opens at the previous day's realized close; the projected close
accumulates, so the last day closes at the Balance Calculator's figures.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .entries import BankAccount, Direction, LedgerEntry
from .balance import Bucket, BalanceSnapshot, classify, compute_balance, scope_ledger
from .dates import day_range, resolve_today
from .money import ZERO


@dataclass
class DailyCashFlow:
    """Movements and balances for one calendar day"""
    day: date
    opening_balance: Decimal
    realized_inflows: Decimal = ZERO
    realized_outflows: Decimal = ZERO
    projected_inflows: Decimal = ZERO
    projected_outflows: Decimal = ZERO
    closing_realized: Decimal = ZERO
    closing_projected: Decimal = ZERO

    @property
    def net_realized(self) -> Decimal:
        return self.realized_inflows - self.realized_outflows

    @property
    def net_projected(self) -> Decimal:
        return self.projected_inflows - self.projected_outflows

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": self.day.isoformat(),
            "opening_balance": str(self.opening_balance),
            "realized_inflows": str(self.realized_inflows),
            "realized_outflows": str(self.realized_outflows),
            "projected_inflows": str(self.projected_inflows),
            "projected_outflows": str(self.projected_outflows),
            "closing_realized": str(self.closing_realized),
            "closing_projected": str(self.closing_projected),
        }


@dataclass
class CashFlowReport:
    """Daily rows for a window plus the balance they roll up to"""
    balance: BalanceSnapshot
    days: List[DailyCashFlow] = field(default_factory=list)

    @property
    def opening_balance(self) -> Decimal:
        return self.balance.opening_balance

    @property
    def closing_realized(self) -> Decimal:
        return self.days[-1].closing_realized if self.days else self.balance.opening_balance

    @property
    def closing_projected(self) -> Decimal:
        return self.days[-1].closing_projected if self.days else self.balance.opening_balance

    def to_dict(self) -> Dict[str, Any]:
        return {
            "balance": self.balance.to_dict(),
            "closing_realized": str(self.closing_realized),
            "closing_projected": str(self.closing_projected),
            "days": [day.to_dict() for day in self.days],
        }


def daily_cash_flow(
    entries: Iterable[LedgerEntry],
    bank_accounts: Iterable[BankAccount],
    account_scope: Optional[Iterable[str]],
    period_start: Any,
    period_end: Any,
    today: Optional[date] = None,
    include_unassigned: bool = False
) -> CashFlowReport:
    """
    Build one DailyCashFlow row per day of the window.

    Overdue pending entries are ignored. Pending entries due between today
    and the window start seed the first day's projected balance.
    """
    today = resolve_today(today)
    entries = list(entries)
    accounts = list(bank_accounts)
    balance = compute_balance(
        entries, accounts, account_scope, period_start, period_end, today,
        include_unassigned=include_unassigned
    )
    start, end = balance.period_start, balance.period_end

    days = {day: DailyCashFlow(day=day, opening_balance=ZERO) for day in day_range(start, end)}
    scoped = scope_ledger(entries, accounts, account_scope, include_unassigned)
    for entry in scoped.entries:
        bucket = classify(entry, start, end, today)
        inflow = entry.direction == Direction.INFLOW
        if bucket == Bucket.SETTLED_IN_PERIOD:
            row = days[entry.settlement_date]
            if inflow:
                row.realized_inflows += entry.amount
            else:
                row.realized_outflows += entry.amount
        elif bucket == Bucket.PENDING_IN_WINDOW:
            row = days[entry.due_date]
            if inflow:
                row.projected_inflows += entry.amount
            else:
                row.projected_outflows += entry.amount

    realized = balance.opening_balance
    projected = (
        balance.opening_balance
        + balance.inflows_pending_before_window
        - balance.outflows_pending_before_window
    )
    report = CashFlowReport(balance=balance)
    for day in day_range(start, end):
        row = days[day]
        row.opening_balance = realized
        realized += row.net_realized
        projected += row.net_realized + row.net_projected
        row.closing_realized = realized
        row.closing_projected = projected
        report.days.append(row)
    return report
