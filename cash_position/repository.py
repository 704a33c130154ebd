"""
Ledger Repository

Storage collaborator for receivables, payables and bank accounts. Supplies
raw rows for a snapshot filter and persists mutations issued by the
settlement service. Entries written back carry the version they were read
at, so a concurrent write to the same entry surfaces as
ConcurrentModification instead of a silent lost update.
"""

from datetime import date, datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple
import uuid

from .storage import StorageInterface
from .entries import (
    BankAccount, Direction, EntryStatus, LedgerEntry,
    normalize, normalize_bank_accounts, normalize_row, parse_status, to_raw
)
from .dates import resolve_today, to_date
from .exceptions import EntryNotFound

ENTRY_TABLES = {
    Direction.INFLOW: "receivables",
    Direction.OUTFLOW: "payables",
}
BANK_ACCOUNTS_TABLE = "bank_accounts"


@dataclass(frozen=True)
class SnapshotFilter:
    """
    What to fetch for one computation request.

    account_ids: restrict accounts and entries to this set (None = all)
    cost_center_id: restrict entries to one cost center
    period_end: drop entries whose effective date falls after this day;
        undated entries are dropped too when a period end is given
    """
    account_ids: Optional[FrozenSet[str]] = None
    cost_center_id: Optional[str] = None
    period_end: Optional[date] = None

    @classmethod
    def build(
        cls,
        account_ids: Optional[Iterable[str]] = None,
        cost_center_id: Optional[str] = None,
        period_end: Optional[date] = None
    ) -> "SnapshotFilter":
        ids = frozenset(account_ids) if account_ids else None
        return cls(account_ids=ids, cost_center_id=cost_center_id, period_end=period_end)


@dataclass
class LedgerSnapshot:
    """Raw rows fetched together for one computation"""
    raw_inflows: List[Dict[str, Any]]
    raw_outflows: List[Dict[str, Any]]
    raw_bank_accounts: List[Dict[str, Any]]
    snapshot_filter: SnapshotFilter = field(default_factory=SnapshotFilter)
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def entries(self, today: Optional[date] = None) -> List[LedgerEntry]:
        return normalize(self.raw_inflows, self.raw_outflows, today)

    def bank_accounts(self) -> List[BankAccount]:
        return normalize_bank_accounts(self.raw_bank_accounts)


def _raw_effective_date(raw: Dict[str, Any], direction: Direction) -> Optional[date]:
    status, _ = parse_status(raw.get("status"))
    if status == EntryStatus.PAID:
        settled = to_date(raw.get(direction.settlement_field)) or to_date(raw.get("settlement_date"))
        if settled is not None:
            return settled
    return to_date(raw.get("due_date"))


class LedgerRepository:
    """Reads snapshots and persists ledger entry mutations"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    # Bank accounts

    def add_bank_account(
        self,
        opening_balance: Any,
        opening_date: Optional[date] = None,
        name: str = "",
        bank: str = "",
        account_id: Optional[str] = None
    ) -> BankAccount:
        account_id = account_id or str(uuid.uuid4())
        row = {
            "id": account_id,
            "opening_balance": str(opening_balance),
            "opening_date": opening_date.isoformat() if opening_date else None,
            "name": name,
            "bank": bank,
        }
        self.storage.save(BANK_ACCOUNTS_TABLE, account_id, row)
        return normalize_bank_accounts([row])[0]

    def get_bank_account(self, account_id: str) -> Optional[BankAccount]:
        row = self.storage.load(BANK_ACCOUNTS_TABLE, account_id)
        return normalize_bank_accounts([row])[0] if row else None

    def list_bank_accounts(self) -> List[BankAccount]:
        return normalize_bank_accounts(self.storage.load_all(BANK_ACCOUNTS_TABLE))

    # Entries

    def add_raw_entry(self, direction: Direction, raw: Dict[str, Any]) -> str:
        """Store a source row as created upstream; returns its id"""
        row = dict(raw)
        row["id"] = str(row.get("id") or uuid.uuid4())
        self.storage.save(ENTRY_TABLES[direction], row["id"], row)
        return row["id"]

    def find_raw_entry(self, entry_id: str) -> Optional[Tuple[Direction, Dict[str, Any]]]:
        for direction, table in ENTRY_TABLES.items():
            row = self.storage.load(table, entry_id)
            if row is not None:
                return direction, row
        return None

    def load_entry(self, entry_id: str, today: Optional[date] = None) -> LedgerEntry:
        """
        Load and normalize one entry

        Raises:
            EntryNotFound: If no receivable or payable has this id
        """
        found = self.find_raw_entry(entry_id)
        if found is None:
            raise EntryNotFound(entry_id)
        direction, row = found
        return normalize_row(row, direction, resolve_today(today))

    def save_entry(self, entry: LedgerEntry, check_version: bool = True) -> LedgerEntry:
        """
        Persist an entry in its source-row shape

        Columns the entry does not model are carried over from the stored row.

        New entries (version 0) must not exist yet; existing entries must
        still be at the version they were loaded with.
        """
        table = ENTRY_TABLES[entry.direction]
        row = dict(self.storage.load(table, entry.id) or {})
        row.update(to_raw(entry))
        if "settlement_date" in row:
            # Fallback column read by the normalizer; keep it in step
            row["settlement_date"] = row[entry.direction.settlement_field]

        expected = entry.version if check_version else None
        entry.version = self.storage.save(table, entry.id, row, expected_version=expected)
        return entry

    def delete_entry(self, entry: LedgerEntry) -> bool:
        return self.storage.delete(ENTRY_TABLES[entry.direction], entry.id)

    # Snapshots

    def _matches(self, raw: Dict[str, Any], direction: Direction, snapshot_filter: SnapshotFilter) -> bool:
        if snapshot_filter.account_ids is not None:
            if raw.get("bank_account_id") not in snapshot_filter.account_ids:
                return False
        if snapshot_filter.cost_center_id is not None:
            if raw.get("cost_center_id") != snapshot_filter.cost_center_id:
                return False
        if snapshot_filter.period_end is not None:
            effective = _raw_effective_date(raw, direction)
            if effective is None or effective > snapshot_filter.period_end:
                return False
        return True

    def fetch_snapshot(self, snapshot_filter: Optional[SnapshotFilter] = None) -> LedgerSnapshot:
        """Fetch raw rows for one computation request"""
        snapshot_filter = snapshot_filter or SnapshotFilter()
        rows = {}
        for direction, table in ENTRY_TABLES.items():
            rows[direction] = [
                raw for raw in self.storage.load_all(table)
                if self._matches(raw, direction, snapshot_filter)
            ]

        accounts = self.storage.load_all(BANK_ACCOUNTS_TABLE)
        if snapshot_filter.account_ids is not None:
            accounts = [a for a in accounts if a.get("id") in snapshot_filter.account_ids]

        return LedgerSnapshot(
            raw_inflows=rows[Direction.INFLOW],
            raw_outflows=rows[Direction.OUTFLOW],
            raw_bank_accounts=accounts,
            snapshot_filter=snapshot_filter,
        )
