"""
Aging Module

Classifies open entries by how long they are past due, measured from the
first due date an entry ever had so rescheduling does not reset its age.
Supplies the overdue classification consumed by collection notices.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from enum import Enum

from .entries import Direction, LedgerEntry, is_overdue
from .dates import resolve_today
from .money import ZERO


class AgingBucket(Enum):
    """Days-past-due ranges"""
    NOT_DUE = "not_due"
    DUE_TODAY = "due_today"
    UP_TO_7_DAYS = "up_to_7_days"
    UP_TO_30_DAYS = "up_to_30_days"
    OVER_30_DAYS = "over_30_days"


def days_past_due(entry: LedgerEntry, today: date) -> Optional[int]:
    """Days since the original due date; negative when not yet due"""
    reference = entry.original_due_date or entry.due_date
    if reference is None:
        return None
    return (today - reference).days


def aging_bucket(days: int) -> AgingBucket:
    if days < 0:
        return AgingBucket.NOT_DUE
    elif days == 0:
        return AgingBucket.DUE_TODAY
    elif days <= 7:
        return AgingBucket.UP_TO_7_DAYS
    elif days <= 30:
        return AgingBucket.UP_TO_30_DAYS
    else:
        return AgingBucket.OVER_30_DAYS


@dataclass
class OverdueEntry:
    """An overdue entry with its age"""
    entry: LedgerEntry
    days_past_due: int
    bucket: AgingBucket

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry": self.entry.to_dict(),
            "days_past_due": self.days_past_due,
            "bucket": self.bucket.value,
        }


def overdue_entries(
    entries: Iterable[LedgerEntry],
    today: Optional[date] = None,
    direction: Optional[Direction] = None
) -> List[OverdueEntry]:
    """
    Entries currently overdue, oldest first

    Args:
        entries: Normalized ledger entries
        today: Reference day
        direction: Only inflows (receivables) or outflows (payables)
    """
    today = resolve_today(today)
    result = []
    for entry in entries:
        if direction is not None and entry.direction != direction:
            continue
        if not is_overdue(entry.status, entry.due_date, today):
            continue
        days = days_past_due(entry, today)
        result.append(OverdueEntry(entry=entry, days_past_due=days, bucket=aging_bucket(days)))

    result.sort(key=lambda item: (-item.days_past_due, item.entry.id))
    return result


@dataclass
class AgingSummary:
    """Open amounts and counts per aging bucket"""
    today: date
    amounts: Dict[AgingBucket, Decimal] = field(
        default_factory=lambda: {bucket: ZERO for bucket in AgingBucket}
    )
    counts: Dict[AgingBucket, int] = field(
        default_factory=lambda: {bucket: 0 for bucket in AgingBucket}
    )

    @property
    def total_amount(self) -> Decimal:
        total = ZERO
        for amount in self.amounts.values():
            total += amount
        return total

    @property
    def total_count(self) -> int:
        return sum(self.counts.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "today": self.today.isoformat(),
            "buckets": {
                bucket.value: {
                    "amount": str(self.amounts[bucket]),
                    "count": self.counts[bucket],
                }
                for bucket in AgingBucket
            },
            "total_amount": str(self.total_amount),
            "total_count": self.total_count,
        }


def aging_summary(
    entries: Iterable[LedgerEntry],
    today: Optional[date] = None,
    direction: Optional[Direction] = None
) -> AgingSummary:
    """Total open (pending or overdue) amounts per aging bucket; undated entries are skipped"""
    today = resolve_today(today)
    summary = AgingSummary(today=today)
    for entry in entries:
        if direction is not None and entry.direction != direction:
            continue
        if not entry.is_open:
            continue
        days = days_past_due(entry, today)
        if days is None:
            continue
        bucket = aging_bucket(days)
        summary.amounts[bucket] += entry.amount
        summary.counts[bucket] += 1
    return summary
