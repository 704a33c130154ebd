"""
Settlement Mutator

The only component that writes ledger state. Applies settlement, reopening,
partial settlement, cloning, rescheduling, account reassignment and deletion
through the ledger repository and records each change in the audit trail.

Writes and subsequent balance computations are not linked: callers fetch a
fresh snapshot after mutating.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, replace
from typing import Any, Iterable, List, Optional
import uuid

from .audit import AuditTrail, AuditEventType
from .entries import EntryStatus, LedgerEntry, refresh_display_status
from .repository import LedgerRepository
from .dates import resolve_today, to_date
from .money import ZERO, quantize, to_decimal
from .exceptions import InvalidAmount, InvalidTransition, LinkedEntry
from .logging_config import get_logger, log_action


@dataclass
class PartialSettlement:
    """Result of splitting an entry into a paid part and a pending residual"""
    paid: LedgerEntry
    residual: LedgerEntry

    @property
    def paid_amount(self) -> Decimal:
        return self.paid.amount

    @property
    def residual_amount(self) -> Decimal:
        return self.residual.amount


class SettlementService:
    """
    Applies state transitions to ledger entries
    """

    def __init__(
        self,
        repository: LedgerRepository,
        audit_trail: Optional[AuditTrail] = None,
        user_id: Optional[str] = None
    ):
        self.repository = repository
        self.storage = repository.storage
        self.audit_trail = audit_trail
        self.user_id = user_id
        self.logger = get_logger("cashpos.settlement")

    def _audit(self, event_type: AuditEventType, entry: LedgerEntry, metadata: dict) -> None:
        if self.audit_trail is not None:
            self.audit_trail.log_event(
                event_type=event_type,
                entity_type=entry.direction.value,
                entity_id=entry.id,
                metadata=metadata,
                user_id=self.user_id
            )

    def _log(self, message: str, action: str, entry: LedgerEntry, extra: dict) -> None:
        log_action(
            self.logger, "info", message,
            user_id=self.user_id, action=action,
            resource=f"{entry.direction.value}:{entry.id}", extra=extra
        )

    def settle(self, entry_id: str, settlement_date: Any) -> LedgerEntry:
        """
        Mark a pending entry as paid/received

        Settling an already-paid entry with the same date is a no-op;
        with a different date it overwrites the settlement date.

        Raises:
            EntryNotFound: Unknown entry id
            InvalidTransition: Entry is cancelled
            ValueError: settlement_date is not a date
        """
        day = self._require_date(settlement_date, "settlement_date")
        entry = self.repository.load_entry(entry_id)

        if entry.status == EntryStatus.PAID:
            if entry.settlement_date == day:
                return entry
            previous = entry.settlement_date
            entry.settlement_date = day
            with self.storage.atomic():
                self.repository.save_entry(entry)
                self._audit(AuditEventType.ENTRY_SETTLEMENT_DATE_CHANGED, entry, {
                    "previous_settlement_date": previous,
                    "settlement_date": day,
                })
            self._log("Settlement date changed", "settle", entry, {"settlement_date": day.isoformat()})
            return entry

        if entry.status != EntryStatus.PENDING:
            raise InvalidTransition(
                f"Cannot settle ledger entry {entry_id} in {entry.status.value} status"
            )

        entry.status = EntryStatus.PAID
        entry.settlement_date = day
        refresh_display_status(entry, resolve_today())
        with self.storage.atomic():
            self.repository.save_entry(entry)
            self._audit(AuditEventType.ENTRY_SETTLED, entry, {
                "amount": entry.amount,
                "settlement_date": day,
                "bank_account_id": entry.bank_account_id,
            })
        self._log("Entry settled", "settle", entry, {
            "amount": str(entry.amount), "settlement_date": day.isoformat()
        })
        return entry

    def reopen(self, entry_id: str) -> LedgerEntry:
        """
        Return a paid entry to pending, clearing its settlement date

        Raises:
            EntryNotFound: Unknown entry id
            InvalidTransition: Entry is not paid
        """
        entry = self.repository.load_entry(entry_id)
        if entry.status != EntryStatus.PAID:
            raise InvalidTransition(
                f"Cannot reopen ledger entry {entry_id} in {entry.status.value} status"
            )

        previous = entry.settlement_date
        entry.status = EntryStatus.PENDING
        entry.settlement_date = None
        refresh_display_status(entry, resolve_today())
        with self.storage.atomic():
            self.repository.save_entry(entry)
            self._audit(AuditEventType.ENTRY_REOPENED, entry, {
                "previous_settlement_date": previous,
            })
        self._log("Entry reopened", "reopen", entry, {})
        return entry

    def partial_settle(
        self,
        entry_id: str,
        paid_amount: Any,
        settlement_date: Any,
        residual_due_date: Any
    ) -> PartialSettlement:
        """
        Split an entry into a paid portion and a pending residual

        The original entry keeps its id and installment link and becomes the
        paid portion. The residual is a new, unlinked pending entry for the
        remaining amount with no interest, fine or discount.

        Raises:
            EntryNotFound: Unknown entry id
            InvalidTransition: Entry is not pending
            InvalidAmount: paid_amount is not strictly between 0 and the entry amount
                or is not a whole number of cents
        """
        settled_on = self._require_date(settlement_date, "settlement_date")
        residual_due = self._require_date(residual_due_date, "residual_due_date")
        raw_paid = to_decimal(paid_amount, precision=6)
        paid = quantize(raw_paid)

        entry = self.repository.load_entry(entry_id)
        if entry.status != EntryStatus.PENDING:
            raise InvalidTransition(
                f"Cannot partially settle ledger entry {entry_id} in {entry.status.value} status"
            )
        if raw_paid <= ZERO or raw_paid >= entry.amount:
            raise InvalidAmount(
                f"Paid amount {raw_paid.normalize()} must be greater than zero and less than {entry.amount}"
            )
        if raw_paid != paid:
            raise InvalidAmount(f"Paid amount {raw_paid.normalize()} is not a whole number of cents")

        amount_before = entry.amount
        today = resolve_today()

        residual = replace(
            entry,
            id=str(uuid.uuid4()),
            amount=amount_before - paid,
            original_amount=amount_before - paid,
            interest=ZERO,
            fine=ZERO,
            discount=ZERO,
            status=EntryStatus.PENDING,
            due_date=residual_due,
            original_due_date=None,
            settlement_date=None,
            linked_installment_id=None,
            legacy_overdue_tag=False,
            version=0,
        )
        refresh_display_status(residual, today)

        entry.amount = paid
        entry.status = EntryStatus.PAID
        entry.settlement_date = settled_on
        refresh_display_status(entry, today)

        with self.storage.atomic():
            self.repository.save_entry(entry)
            self.repository.save_entry(residual)
            self._audit(AuditEventType.ENTRY_PARTIALLY_SETTLED, entry, {
                "original_id": entry.id,
                "residual_id": residual.id,
                "paid_amount": entry.amount,
                "residual_amount": residual.amount,
                "amount_before": amount_before,
                "settlement_date": settled_on,
                "residual_due_date": residual_due,
            })

        self._log("Entry partially settled", "partial_settle", entry, {
            "residual_id": residual.id,
            "paid_amount": str(entry.amount),
            "residual_amount": str(residual.amount),
        })
        return PartialSettlement(paid=entry, residual=residual)

    def clone(self, entry_id: str) -> LedgerEntry:
        """
        Duplicate an entry as a new pending entry with no installment link

        Raises:
            EntryNotFound: Unknown entry id
        """
        source = self.repository.load_entry(entry_id)
        copy = replace(
            source,
            id=str(uuid.uuid4()),
            status=EntryStatus.PENDING,
            settlement_date=None,
            linked_installment_id=None,
            legacy_overdue_tag=False,
            version=0,
        )
        refresh_display_status(copy, resolve_today())
        with self.storage.atomic():
            self.repository.save_entry(copy)
            self._audit(AuditEventType.ENTRY_CLONED, copy, {
                "source_id": source.id,
                "amount": copy.amount,
            })
        self._log("Entry cloned", "clone", copy, {"source_id": source.id})
        return copy

    def reschedule(self, entry_ids: Iterable[str], new_due_date: Any) -> List[LedgerEntry]:
        """
        Move the due date of several entries

        The first reschedule of an entry remembers its original due date,
        which aging keeps measuring from.
        """
        due = self._require_date(new_due_date, "new_due_date")
        today = resolve_today()
        updated = []
        with self.storage.atomic():
            for entry_id in entry_ids:
                entry = self.repository.load_entry(entry_id)
                previous = entry.due_date
                if entry.original_due_date is None:
                    entry.original_due_date = previous
                entry.due_date = due
                refresh_display_status(entry, today)
                self.repository.save_entry(entry)
                self._audit(AuditEventType.ENTRY_RESCHEDULED, entry, {
                    "previous_due_date": previous,
                    "due_date": due,
                })
                updated.append(entry)
        self.logger.info("Rescheduled %d entries to %s", len(updated), due.isoformat())
        return updated

    def reassign_account(self, entry_ids: Iterable[str], new_account_id: Optional[str]) -> List[LedgerEntry]:
        """Move several entries to another bank account (None unassigns)"""
        updated = []
        with self.storage.atomic():
            for entry_id in entry_ids:
                entry = self.repository.load_entry(entry_id)
                previous = entry.bank_account_id
                entry.bank_account_id = new_account_id
                self.repository.save_entry(entry)
                self._audit(AuditEventType.ENTRY_ACCOUNT_REASSIGNED, entry, {
                    "previous_bank_account_id": previous,
                    "bank_account_id": new_account_id,
                })
                updated.append(entry)
        self.logger.info("Reassigned %d entries to account %s", len(updated), new_account_id)
        return updated

    def settle_many(self, entry_ids: Iterable[str], settlement_date: Any) -> List[LedgerEntry]:
        """Batch settle; stops at the first failure"""
        return [self.settle(entry_id, settlement_date) for entry_id in entry_ids]

    def reopen_many(self, entry_ids: Iterable[str]) -> List[LedgerEntry]:
        """Batch reopen; stops at the first failure"""
        return [self.reopen(entry_id) for entry_id in entry_ids]

    def delete(self, entry_id: str, allow_linked: bool = False) -> bool:
        """
        Hard-delete an entry

        Args:
            entry_id: Entry to remove
            allow_linked: Caller holds the override privilege for entries
                generated from a contract installment

        Raises:
            EntryNotFound: Unknown entry id
            LinkedEntry: Entry is linked to an installment and allow_linked is False
        """
        entry = self.repository.load_entry(entry_id)
        if entry.linked_installment_id and not allow_linked:
            raise LinkedEntry(entry.id, entry.linked_installment_id)

        with self.storage.atomic():
            deleted = self.repository.delete_entry(entry)
            self._audit(AuditEventType.ENTRY_DELETED, entry, {
                "amount": entry.amount,
                "status": entry.status,
                "linked_installment_id": entry.linked_installment_id,
            })
        self._log("Entry deleted", "delete", entry, {"override": allow_linked})
        return deleted

    @staticmethod
    def _require_date(value: Any, name: str) -> date:
        day = to_date(value)
        if day is None:
            raise ValueError(f"{name} must be a date, got {value!r}")
        return day
