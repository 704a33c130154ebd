"""
Error kinds raised by the settlement mutator, the storage collaborator and,
in strict mode, the balance calculator.

Mutation errors subclass ValueError so callers that already catch ValueError
for domain failures keep working.
"""

from typing import Optional


class CashPositionError(Exception):
    """Base class for all engine errors"""


class EntryNotFound(CashPositionError, LookupError):
    """No ledger entry with the given id exists in the store"""

    def __init__(self, entry_id: str):
        super().__init__(f"Ledger entry {entry_id} not found")
        self.entry_id = entry_id


class InvalidAmount(CashPositionError, ValueError):
    """Partial settlement amount outside (0, amount)"""


class InvalidTransition(CashPositionError, ValueError):
    """Requested status change is not allowed from the entry's current status"""


class LinkedEntry(CashPositionError, ValueError):
    """Delete blocked because the entry belongs to a contract installment"""

    def __init__(self, entry_id: str, installment_id: str):
        super().__init__(
            f"Ledger entry {entry_id} is linked to installment {installment_id}; "
            f"deleting it requires override privilege"
        )
        self.entry_id = entry_id
        self.installment_id = installment_id


class InconsistentSnapshot(CashPositionError, ValueError):
    """Snapshot data that cannot be attributed consistently, raised only in strict mode"""

    def __init__(self, message: str, entry_id: Optional[str] = None):
        super().__init__(message)
        self.entry_id = entry_id


class ConcurrentModification(CashPositionError):
    """Optimistic version check failed on write"""

    def __init__(self, table: str, record_id: str, expected: int, actual: int):
        super().__init__(
            f"Record {record_id} in {table} was modified concurrently "
            f"(expected version {expected}, found {actual})"
        )
        self.table = table
        self.record_id = record_id
        self.expected = expected
        self.actual = actual
