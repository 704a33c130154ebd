"""
Audit Cross-Validator

Recomputes the headline balance metrics along two independent paths and
reports, per metric, whether they agree:

    path A: one aggregate computation over every account in scope
    path B: entries grouped by account first, one computation per account,
            results summed

A mismatch is a normal reportable outcome (matches=False), never an error.
Nothing here writes state; findings are only logged.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .entries import BankAccount, LedgerEntry
from .balance import BalanceSnapshot, SnapshotAnomaly, compute_balance, scope_ledger
from .dates import resolve_today
from .money import DEFAULT_TOLERANCE, ZERO, amounts_match
from .logging_config import get_logger

logger = get_logger("cashpos.reconciliation")

# (attribute on BalanceSnapshot, label shown to the presentation layer)
METRICS = (
    ("opening_balance", "Opening balance"),
    ("realized_balance", "Realized balance"),
    ("projected_balance", "Projected balance"),
    ("total_inflows", "Total inflows"),
)


@dataclass
class AuditFinding:
    """Result of comparing one metric across both paths"""
    metric: str
    metric_label: str
    value_from_path_a: Decimal
    value_from_path_b: Decimal
    matches: bool

    @property
    def difference(self) -> Decimal:
        return self.value_from_path_a - self.value_from_path_b

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "metric_label": self.metric_label,
            "value_from_path_a": str(self.value_from_path_a),
            "value_from_path_b": str(self.value_from_path_b),
            "difference": str(self.difference),
            "matches": self.matches,
        }


@dataclass
class AccountBreakdown:
    """One row of the per-account path"""
    account_id: str
    account_name: str
    snapshot: BalanceSnapshot

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account_id": self.account_id,
            "account_name": self.account_name,
            "snapshot": self.snapshot.to_dict(),
        }


def aggregate_path(
    entries: Iterable[LedgerEntry],
    bank_accounts: Iterable[BankAccount],
    period_start: Any,
    period_end: Any,
    today: Optional[date] = None,
    account_scope: Optional[Iterable[str]] = None
) -> BalanceSnapshot:
    """Path A: a single computation over the whole scope"""
    return compute_balance(entries, bank_accounts, account_scope, period_start, period_end, today)


def breakdown_path(
    entries: Iterable[LedgerEntry],
    bank_accounts: Iterable[BankAccount],
    period_start: Any,
    period_end: Any,
    today: Optional[date] = None,
    account_scope: Optional[Iterable[str]] = None
) -> List[AccountBreakdown]:
    """Path B: group entries by account, then compute each account on its own"""
    # Same de-duplicated account set as the aggregate path
    accounts = scope_ledger([], bank_accounts, account_scope).accounts

    grouped: Dict[str, List[LedgerEntry]] = {account.id: [] for account in accounts}
    for entry in entries:
        if entry.bank_account_id in grouped:
            grouped[entry.bank_account_id].append(entry)

    rows = []
    for account in accounts:
        snapshot = compute_balance(
            grouped[account.id], [account], [account.id], period_start, period_end, today
        )
        rows.append(AccountBreakdown(account_id=account.id, account_name=account.name, snapshot=snapshot))
    return rows


def _breakdown_total(rows: List[AccountBreakdown], metric: str) -> Decimal:
    total = ZERO
    for row in rows:
        total += getattr(row.snapshot, metric)
    return total


def compare_paths(
    path_a: BalanceSnapshot,
    path_b: List[AccountBreakdown],
    tolerance: Decimal = DEFAULT_TOLERANCE
) -> List[AuditFinding]:
    """One finding per headline metric; matches when |A - B| < tolerance"""
    findings = []
    for metric, label in METRICS:
        value_a = getattr(path_a, metric)
        value_b = _breakdown_total(path_b, metric)
        finding = AuditFinding(
            metric=metric,
            metric_label=label,
            value_from_path_a=value_a,
            value_from_path_b=value_b,
            matches=amounts_match(value_a, value_b, tolerance),
        )
        if not finding.matches:
            logger.warning(
                "Audit mismatch on %s: aggregate=%s breakdown=%s difference=%s",
                metric, value_a, value_b, finding.difference
            )
        findings.append(finding)
    return findings


def cross_validate(
    entries: Iterable[LedgerEntry],
    bank_accounts: Iterable[BankAccount],
    period_start: Any,
    period_end: Any,
    today: Optional[date] = None,
    account_scope: Optional[Iterable[str]] = None,
    tolerance: Decimal = DEFAULT_TOLERANCE
) -> List[AuditFinding]:
    """
    Compare the aggregate and per-account paths for opening, realized,
    projected and total inflows.
    """
    return reconcile(
        entries, bank_accounts, period_start, period_end, today, account_scope, tolerance
    ).findings


@dataclass
class ReconciliationReport:
    """Everything the audit view renders"""
    period_start: date
    period_end: date
    today: date
    aggregate: BalanceSnapshot
    breakdown: List[AccountBreakdown] = field(default_factory=list)
    findings: List[AuditFinding] = field(default_factory=list)

    @property
    def anomalies(self) -> List[SnapshotAnomaly]:
        return self.aggregate.anomalies

    @property
    def all_match(self) -> bool:
        return all(finding.matches for finding in self.findings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "today": self.today.isoformat(),
            "all_match": self.all_match,
            "aggregate": self.aggregate.to_dict(),
            "breakdown": [row.to_dict() for row in self.breakdown],
            "findings": [finding.to_dict() for finding in self.findings],
            "anomalies": [anomaly.to_dict() for anomaly in self.anomalies],
        }


def reconcile(
    entries: Iterable[LedgerEntry],
    bank_accounts: Iterable[BankAccount],
    period_start: Any,
    period_end: Any,
    today: Optional[date] = None,
    account_scope: Optional[Iterable[str]] = None,
    tolerance: Decimal = DEFAULT_TOLERANCE
) -> ReconciliationReport:
    """Run both paths and compare them"""
    today = resolve_today(today)
    entries = list(entries)
    accounts = list(bank_accounts)
    scope = list(account_scope) if account_scope else None

    path_a = aggregate_path(entries, accounts, period_start, period_end, today, scope)
    path_b = breakdown_path(entries, accounts, period_start, period_end, today, scope)
    findings = compare_paths(path_a, path_b, tolerance)

    report = ReconciliationReport(
        period_start=path_a.period_start,
        period_end=path_a.period_end,
        today=today,
        aggregate=path_a,
        breakdown=path_b,
        findings=findings,
    )
    logger.info(
        "Reconciled %d accounts for [%s, %s]: %s",
        len(path_b), path_a.period_start, path_a.period_end,
        "all metrics match" if report.all_match else "mismatch found"
    )
    return report
