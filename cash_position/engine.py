"""
Cash Position Engine

Wires storage, repository, audit trail and settlement service together and
runs the explicit fetch snapshot -> normalize -> compute pipeline. Holds no
ledger state between calls: every computation fetches its own snapshot.
"""

from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from .config import CashPositionConfig, get_config
from .storage import StorageInterface, create_storage
from .audit import AuditTrail
from .repository import LedgerRepository, LedgerSnapshot, SnapshotFilter
from .settlement import SettlementService
from .entries import Direction
from .balance import BalanceSnapshot, compute_account_balances, compute_balance
from .sequencer import RunningBalanceRow, statement
from .cashflow import CashFlowReport, daily_cash_flow
from .reconciliation import AuditFinding, ReconciliationReport, reconcile
from .aging import AgingSummary, OverdueEntry, aging_summary, overdue_entries
from .dates import resolve_today, to_date
from .money import decimal_from_string
from .logging_config import get_logger


class CashPositionEngine:
    """Cash position engine with all components initialized"""

    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        config: Optional[CashPositionConfig] = None,
        user_id: Optional[str] = None
    ):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config.database_url)
        self.repository = LedgerRepository(self.storage)
        self.audit_trail = AuditTrail(self.storage) if self.config.enable_audit_logging else None
        self.settlement = SettlementService(self.repository, self.audit_trail, user_id=user_id)
        self.tolerance = decimal_from_string(self.config.match_tolerance)
        self.logger = get_logger("cashpos.engine")

    def fetch(
        self,
        account_ids: Optional[Iterable[str]] = None,
        cost_center_id: Optional[str] = None,
        period_end: Optional[date] = None
    ) -> LedgerSnapshot:
        """Fetch a fresh snapshot from the storage collaborator"""
        snapshot_filter = SnapshotFilter.build(account_ids, cost_center_id, to_date(period_end))
        snapshot = self.repository.fetch_snapshot(snapshot_filter)
        self.logger.debug(
            "Fetched snapshot: %d inflows, %d outflows, %d accounts",
            len(snapshot.raw_inflows), len(snapshot.raw_outflows), len(snapshot.raw_bank_accounts)
        )
        return snapshot

    def balance(
        self,
        period_start: Any,
        period_end: Any,
        account_ids: Optional[Iterable[str]] = None,
        cost_center_id: Optional[str] = None,
        today: Optional[date] = None,
        include_unassigned: bool = False
    ) -> BalanceSnapshot:
        """Opening, realized and projected balance for a window"""
        today = resolve_today(today)
        scope = list(account_ids or [])
        snapshot = self.fetch(scope, cost_center_id, period_end)
        return compute_balance(
            snapshot.entries(today), snapshot.bank_accounts(), scope,
            period_start, period_end, today,
            include_unassigned=include_unassigned, strict=self.config.strict_snapshots
        )

    def account_balances(
        self,
        period_start: Any,
        period_end: Any,
        account_ids: Optional[Iterable[str]] = None,
        today: Optional[date] = None
    ) -> Dict[str, BalanceSnapshot]:
        """One balance per bank account"""
        today = resolve_today(today)
        scope = list(account_ids or [])
        snapshot = self.fetch(scope, period_end=period_end)
        return compute_account_balances(
            snapshot.entries(today), snapshot.bank_accounts(), period_start, period_end,
            today, scope, strict=self.config.strict_snapshots
        )

    def statement(
        self,
        period_start: Any,
        period_end: Any,
        account_ids: Optional[Iterable[str]] = None,
        today: Optional[date] = None
    ) -> List[RunningBalanceRow]:
        """Statement rows with running balances"""
        today = resolve_today(today)
        scope = list(account_ids or [])
        snapshot = self.fetch(scope, period_end=period_end)
        return statement(
            snapshot.entries(today), snapshot.bank_accounts(), scope, period_start, period_end, today
        )

    def daily_cash_flow(
        self,
        period_start: Any,
        period_end: Any,
        account_ids: Optional[Iterable[str]] = None,
        today: Optional[date] = None
    ) -> CashFlowReport:
        today = resolve_today(today)
        scope = list(account_ids or [])
        snapshot = self.fetch(scope, period_end=period_end)
        return daily_cash_flow(
            snapshot.entries(today), snapshot.bank_accounts(), scope, period_start, period_end, today
        )

    def reconcile(
        self,
        period_start: Any,
        period_end: Any,
        account_ids: Optional[Iterable[str]] = None,
        today: Optional[date] = None
    ) -> ReconciliationReport:
        """Audit view: aggregate vs per-account breakdown"""
        today = resolve_today(today)
        scope = list(account_ids or [])
        snapshot = self.fetch(scope, period_end=period_end)
        return reconcile(
            snapshot.entries(today), snapshot.bank_accounts(), period_start, period_end,
            today, scope, self.tolerance
        )

    def cross_validate(
        self,
        period_start: Any,
        period_end: Any,
        account_ids: Optional[Iterable[str]] = None,
        today: Optional[date] = None
    ) -> List[AuditFinding]:
        return self.reconcile(period_start, period_end, account_ids, today).findings

    def overdue(
        self,
        direction: Optional[Direction] = None,
        account_ids: Optional[Iterable[str]] = None,
        today: Optional[date] = None
    ) -> List[OverdueEntry]:
        """Overdue classification for collection notices"""
        today = resolve_today(today)
        snapshot = self.fetch(account_ids)
        return overdue_entries(snapshot.entries(today), today, direction)

    def aging(
        self,
        direction: Optional[Direction] = None,
        account_ids: Optional[Iterable[str]] = None,
        today: Optional[date] = None
    ) -> AgingSummary:
        today = resolve_today(today)
        snapshot = self.fetch(account_ids)
        return aging_summary(snapshot.entries(today), today, direction)

    def verify_audit_trail(self) -> Dict[str, Any]:
        """Integrity check of the mutation audit chain"""
        if self.audit_trail is None:
            return {'valid': True, 'total_events': 0, 'hash_errors': [], 'chain_breaks': []}
        return self.audit_trail.verify_integrity()

    def close(self) -> None:
        self.storage.close()
