"""
Ledger Entry Normalizer

Maps receivable (inflow) and payable (outflow) source rows into one unified
LedgerEntry shape and resolves the display status every balance computation
relies on. Normalization is total: malformed values are coerced, never raised.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from enum import Enum

from .dates import resolve_today, to_date
from .money import ZERO, to_decimal
from .logging_config import get_logger

logger = get_logger("cashpos.entries")


class Direction(Enum):
    """Money flowing into or out of a bank account"""
    INFLOW = "inflow"    # Receivable
    OUTFLOW = "outflow"  # Payable

    @property
    def sign(self) -> int:
        return 1 if self is Direction.INFLOW else -1

    @property
    def settlement_field(self) -> str:
        """Source-row column holding the settlement date"""
        return "received_date" if self is Direction.INFLOW else "paid_date"

    @property
    def counterparty_field(self) -> str:
        """Source-row column holding the customer or supplier"""
        return "customer_id" if self is Direction.INFLOW else "supplier_id"


class EntryStatus(Enum):
    """Stored status of a ledger entry"""
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class DisplayStatus(Enum):
    """Derived status used by all balance math"""
    PENDING = "pending"      # Open and not yet due ("em dia")
    OVERDUE = "overdue"      # Open and due before today
    PAID = "paid"
    CANCELLED = "cancelled"


# Stored status spellings found in source data
_STATUS_ALIASES = {
    "pending": EntryStatus.PENDING,
    "pendente": EntryStatus.PENDING,
    "open": EntryStatus.PENDING,
    "em_aberto": EntryStatus.PENDING,
    "paid": EntryStatus.PAID,
    "pago": EntryStatus.PAID,
    "received": EntryStatus.PAID,
    "recebido": EntryStatus.PAID,
    "cancelled": EntryStatus.CANCELLED,
    "canceled": EntryStatus.CANCELLED,
    "cancelado": EntryStatus.CANCELLED,
}
_OVERDUE_ALIASES = {"overdue", "vencido"}


def parse_status(value: Any) -> Tuple[EntryStatus, bool]:
    """
    Resolve a stored status value.

    Returns (status, legacy_overdue_tag). A literal "overdue" stored value is
    an open entry; the tag records that the source said so.
    """
    if isinstance(value, EntryStatus):
        return value, False
    text = str(value).strip().lower() if value is not None else ""
    if text in _OVERDUE_ALIASES:
        return EntryStatus.PENDING, True
    return _STATUS_ALIASES.get(text, EntryStatus.PENDING), False


@dataclass
class LedgerEntry:
    """A receivable or payable in the unified shape"""
    id: str
    direction: Direction
    amount: Decimal
    status: EntryStatus
    due_date: Optional[date] = None
    competency_date: Optional[date] = None
    settlement_date: Optional[date] = None
    original_amount: Decimal = ZERO
    interest: Decimal = ZERO
    fine: Decimal = ZERO
    discount: Decimal = ZERO
    bank_account_id: Optional[str] = None
    cost_center_id: Optional[str] = None
    linked_installment_id: Optional[str] = None
    chart_account_id: Optional[str] = None
    counterparty_id: Optional[str] = None
    description: str = ""
    original_due_date: Optional[date] = None
    display_status: DisplayStatus = DisplayStatus.PENDING
    legacy_overdue_tag: bool = False
    version: int = 0

    @property
    def effective_date(self) -> Optional[date]:
        """Settlement date for settled entries, due date otherwise"""
        if self.status == EntryStatus.PAID and self.settlement_date is not None:
            return self.settlement_date
        return self.due_date

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the direction's sign applied"""
        return self.amount * self.direction.sign

    @property
    def is_settled(self) -> bool:
        return self.display_status == DisplayStatus.PAID

    @property
    def is_open(self) -> bool:
        """Pending or overdue"""
        return self.display_status in (DisplayStatus.PENDING, DisplayStatus.OVERDUE)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation for presentation collaborators"""
        return {
            "id": self.id,
            "direction": self.direction.value,
            "amount": str(self.amount),
            "original_amount": str(self.original_amount),
            "interest": str(self.interest),
            "fine": str(self.fine),
            "discount": str(self.discount),
            "status": self.status.value,
            "display_status": self.display_status.value,
            "due_date": _iso(self.due_date),
            "competency_date": _iso(self.competency_date),
            "settlement_date": _iso(self.settlement_date),
            "original_due_date": _iso(self.original_due_date),
            "bank_account_id": self.bank_account_id,
            "cost_center_id": self.cost_center_id,
            "linked_installment_id": self.linked_installment_id,
            "chart_account_id": self.chart_account_id,
            "counterparty_id": self.counterparty_id,
            "description": self.description,
            "legacy_overdue_tag": self.legacy_overdue_tag,
        }


@dataclass
class BankAccount:
    """
    Bank account as seen by the engine.

    cached_current_balance is whatever the store last saved; it is never
    read by any computation.
    """
    id: str
    opening_balance: Decimal = ZERO
    opening_date: Optional[date] = None
    cached_current_balance: Optional[Decimal] = None
    name: str = ""
    bank: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "opening_balance": str(self.opening_balance),
            "opening_date": _iso(self.opening_date),
            "cached_current_balance": (
                str(self.cached_current_balance) if self.cached_current_balance is not None else None
            ),
            "name": self.name,
            "bank": self.bank,
        }


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _version(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _optional_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def is_overdue(status: EntryStatus, due_date: Optional[date], today: date) -> bool:
    """An open entry whose due date is strictly before today"""
    return status == EntryStatus.PENDING and due_date is not None and due_date < today


def resolve_display_status(status: EntryStatus, due_date: Optional[date], today: date) -> DisplayStatus:
    """
    Single source of truth for the pending/overdue split.

    Undated open entries stay PENDING; they are excluded from date-bounded
    sums anyway.
    """
    if status == EntryStatus.CANCELLED:
        return DisplayStatus.CANCELLED
    if status == EntryStatus.PAID:
        return DisplayStatus.PAID
    if is_overdue(status, due_date, today):
        return DisplayStatus.OVERDUE
    return DisplayStatus.PENDING


def refresh_display_status(entry: LedgerEntry, today: date) -> LedgerEntry:
    """Recompute display_status in place after a stored-field change"""
    entry.display_status = resolve_display_status(entry.status, entry.due_date, today)
    return entry


def normalize_row(raw: Dict[str, Any], direction: Direction, today: date) -> LedgerEntry:
    """Map one source row to a LedgerEntry"""
    status, legacy_tag = parse_status(raw.get("status"))
    due_date = to_date(raw.get("due_date"))
    settlement_date = to_date(raw.get(direction.settlement_field))
    if settlement_date is None:
        settlement_date = to_date(raw.get("settlement_date"))

    entry = LedgerEntry(
        id=_optional_id(raw.get("id")) or "",
        direction=direction,
        amount=to_decimal(raw.get("amount")),
        status=status,
        due_date=due_date,
        competency_date=to_date(raw.get("competency_date")),
        settlement_date=settlement_date,
        original_amount=to_decimal(raw.get("original_amount")),
        interest=to_decimal(raw.get("interest")),
        fine=to_decimal(raw.get("fine")),
        discount=to_decimal(raw.get("discount")),
        bank_account_id=_optional_id(raw.get("bank_account_id")),
        cost_center_id=_optional_id(raw.get("cost_center_id")),
        linked_installment_id=_optional_id(raw.get("installment_id")),
        chart_account_id=_optional_id(raw.get("chart_account_id")),
        counterparty_id=_optional_id(raw.get(direction.counterparty_field)),
        description=str(raw.get("description") or ""),
        original_due_date=to_date(raw.get("original_due_date")),
        legacy_overdue_tag=legacy_tag,
        version=_version(raw.get("_version")),
    )
    entry.display_status = resolve_display_status(entry.status, entry.due_date, today)

    if entry.status == EntryStatus.PAID and entry.settlement_date is None:
        logger.warning(
            "Settled entry %s has no settlement date; excluded from dated totals", entry.id
        )
    elif entry.status != EntryStatus.PAID and entry.settlement_date is not None:
        logger.warning(
            "Open entry %s (%s) carries settlement date %s", entry.id, entry.status.value, entry.settlement_date
        )
    return entry


def normalize(
    raw_inflows: Optional[Iterable[Dict[str, Any]]],
    raw_outflows: Optional[Iterable[Dict[str, Any]]],
    today: Optional[date] = None
) -> List[LedgerEntry]:
    """
    Normalize receivable and payable rows into a single entry list.

    Args:
        raw_inflows: Receivable rows (settlement date in "received_date")
        raw_outflows: Payable rows (settlement date in "paid_date")
        today: Reference day for the overdue split (configured time zone if omitted)

    Returns:
        Inflows followed by outflows, in source order
    """
    today = resolve_today(today)
    entries = []
    for direction, rows in ((Direction.INFLOW, raw_inflows), (Direction.OUTFLOW, raw_outflows)):
        for position, row in enumerate(rows or []):
            if not isinstance(row, Mapping):
                logger.warning("Skipping malformed %s row %d: %r", direction.value, position, row)
                continue
            entries.append(normalize_row(row, direction, today))
    return entries


def normalize_bank_accounts(raw_accounts: Optional[Iterable[Dict[str, Any]]]) -> List[BankAccount]:
    """Map bank account rows; missing balances coerce to zero"""
    accounts = []
    for raw in raw_accounts or []:
        if not isinstance(raw, Mapping):
            logger.warning("Skipping malformed bank account row: %r", raw)
            continue
        cached = raw.get("current_balance")
        accounts.append(BankAccount(
            id=_optional_id(raw.get("id")) or "",
            opening_balance=to_decimal(raw.get("opening_balance")),
            opening_date=to_date(raw.get("opening_date")),
            cached_current_balance=to_decimal(cached) if cached is not None else None,
            name=str(raw.get("name") or ""),
            bank=str(raw.get("bank") or ""),
        ))
    return accounts


def to_raw(entry: LedgerEntry) -> Dict[str, Any]:
    """Map an entry back to its source-row shape for the storage collaborator"""
    direction = entry.direction
    return {
        "id": entry.id,
        "amount": str(entry.amount),
        "original_amount": str(entry.original_amount),
        "interest": str(entry.interest),
        "fine": str(entry.fine),
        "discount": str(entry.discount),
        "status": entry.status.value,
        "due_date": _iso(entry.due_date),
        "competency_date": _iso(entry.competency_date),
        direction.settlement_field: _iso(entry.settlement_date),
        "original_due_date": _iso(entry.original_due_date),
        "bank_account_id": entry.bank_account_id,
        "cost_center_id": entry.cost_center_id,
        "installment_id": entry.linked_installment_id,
        "chart_account_id": entry.chart_account_id,
        direction.counterparty_field: entry.counterparty_id,
        "description": entry.description,
    }
