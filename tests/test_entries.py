"""
Test suite for the ledger entry normalizer

Tests mapping of receivable and payable rows into the unified entry shape,
status vocabulary, display status resolution and coercion of malformed data.
"""

from decimal import Decimal
from datetime import date

from cash_position.entries import (
    Direction, EntryStatus, DisplayStatus, LedgerEntry, BankAccount,
    parse_status, is_overdue, resolve_display_status, refresh_display_status,
    normalize, normalize_bank_accounts, to_raw
)

TODAY = date(2024, 3, 10)


class TestStatus:
    """Test stored status parsing and display status resolution"""

    def test_status_aliases(self):
        assert parse_status("pago") == (EntryStatus.PAID, False)
        assert parse_status("Recebido") == (EntryStatus.PAID, False)
        assert parse_status("pendente") == (EntryStatus.PENDING, False)
        assert parse_status("canceled") == (EntryStatus.CANCELLED, False)
        assert parse_status(EntryStatus.PAID) == (EntryStatus.PAID, False)

    def test_unknown_status_is_pending(self):
        assert parse_status(None) == (EntryStatus.PENDING, False)
        assert parse_status("archived") == (EntryStatus.PENDING, False)

    def test_literal_overdue_is_tagged_pending(self):
        """Test that a stored "overdue" is an informational tag only"""
        assert parse_status("overdue") == (EntryStatus.PENDING, True)
        assert parse_status("vencido") == (EntryStatus.PENDING, True)

    def test_display_status(self):
        assert resolve_display_status(EntryStatus.PAID, date(2024, 1, 1), TODAY) == DisplayStatus.PAID
        assert resolve_display_status(EntryStatus.CANCELLED, date(2024, 1, 1), TODAY) == DisplayStatus.CANCELLED
        assert resolve_display_status(EntryStatus.PENDING, date(2024, 3, 9), TODAY) == DisplayStatus.OVERDUE
        assert resolve_display_status(EntryStatus.PENDING, TODAY, TODAY) == DisplayStatus.PENDING
        assert resolve_display_status(EntryStatus.PENDING, None, TODAY) == DisplayStatus.PENDING

    def test_is_overdue_strictly_before_today(self):
        assert is_overdue(EntryStatus.PENDING, date(2024, 3, 9), TODAY)
        assert not is_overdue(EntryStatus.PENDING, TODAY, TODAY)
        assert not is_overdue(EntryStatus.PAID, date(2024, 3, 9), TODAY)

    def test_refresh_display_status(self):
        entry = LedgerEntry(
            id="E1", direction=Direction.INFLOW, amount=Decimal("10.00"),
            status=EntryStatus.PENDING, due_date=date(2024, 3, 1)
        )
        refresh_display_status(entry, TODAY)
        assert entry.display_status == DisplayStatus.OVERDUE


class TestNormalize:
    """Test row normalization"""

    def test_inflow_and_outflow_rows(self):
        inflows = [{
            "id": "R1", "amount": "500.00", "status": "paid",
            "due_date": "2024-03-01", "received_date": "2024-03-05T10:00:00",
            "bank_account_id": "A1", "customer_id": "C1", "installment_id": "P1",
        }]
        outflows = [{
            "id": "P1", "amount": 300, "status": "pending",
            "due_date": "2024-03-15", "bank_account_id": "A1", "supplier_id": "S1",
        }]

        entries = normalize(inflows, outflows, TODAY)

        assert [e.id for e in entries] == ["R1", "P1"]
        receivable, payable = entries
        assert receivable.direction == Direction.INFLOW
        assert receivable.settlement_date == date(2024, 3, 5)
        assert receivable.effective_date == date(2024, 3, 5)
        assert receivable.counterparty_id == "C1"
        assert receivable.linked_installment_id == "P1"
        assert receivable.display_status == DisplayStatus.PAID
        assert payable.direction == Direction.OUTFLOW
        assert payable.amount == Decimal("300.00")
        assert payable.signed_amount == Decimal("-300.00")
        assert payable.counterparty_id == "S1"
        assert payable.effective_date == date(2024, 3, 15)

    def test_malformed_row_is_coerced(self):
        """Test that normalization never raises on bad data"""
        entries = normalize([{"id": "X", "amount": None, "due_date": "garbage", "interest": "abc"}], None, TODAY)

        entry = entries[0]
        assert entry.amount == Decimal("0.00")
        assert entry.interest == Decimal("0.00")
        assert entry.due_date is None
        assert entry.status == EntryStatus.PENDING
        assert entry.display_status == DisplayStatus.PENDING

    def test_non_mapping_rows_are_skipped(self):
        """Test that rows which are not mappings are dropped instead of raising"""
        entries = normalize([None, "garbage", {"id": "R1", "amount": "5"}], [42], TODAY)

        assert [entry.id for entry in entries] == ["R1"]
        assert normalize_bank_accounts([None, {"id": "A1"}])[0].id == "A1"

    def test_missing_id_is_empty(self):
        entries = normalize([{"id": None, "amount": "1"}, {"amount": "2"}], [], TODAY)
        assert [entry.id for entry in entries] == ["", ""]

    def test_open_row_with_settlement_date_is_kept(self):
        """Test that an inconsistent pending row is normalized as stored"""
        entries = normalize([{"id": "R1", "amount": "1", "status": "pending", "received_date": "2024-03-12"}], [], TODAY)

        assert entries[0].status == EntryStatus.PENDING
        assert entries[0].settlement_date == date(2024, 3, 12)

    def test_blank_ids_become_none(self):
        entries = normalize([{"id": "X", "amount": "1", "bank_account_id": "  ", "cost_center_id": ""}], [], TODAY)
        assert entries[0].bank_account_id is None
        assert entries[0].cost_center_id is None

    def test_outflow_settlement_field(self):
        entries = normalize([], [{"id": "P", "amount": "1", "status": "pago", "paid_date": "2024-03-02"}], TODAY)
        assert entries[0].settlement_date == date(2024, 3, 2)

    def test_version_is_carried(self):
        entries = normalize([{"id": "X", "amount": "1", "_version": 4}, {"id": "Y", "_version": "bad"}], [], TODAY)
        assert entries[0].version == 4
        assert entries[1].version == 0

    def test_to_raw_uses_direction_fields(self):
        entry = LedgerEntry(
            id="P1", direction=Direction.OUTFLOW, amount=Decimal("42.00"),
            status=EntryStatus.PAID, due_date=date(2024, 3, 1),
            settlement_date=date(2024, 3, 2), counterparty_id="S1",
            linked_installment_id="I1"
        )
        raw = to_raw(entry)

        assert raw["paid_date"] == "2024-03-02"
        assert raw["supplier_id"] == "S1"
        assert raw["installment_id"] == "I1"
        assert "received_date" not in raw
        assert normalize([], [raw], TODAY)[0].settlement_date == date(2024, 3, 2)


class TestBankAccounts:
    """Test bank account normalization"""

    def test_normalize_bank_accounts(self):
        accounts = normalize_bank_accounts([
            {"id": "A1", "opening_balance": "1.000,00", "opening_date": "2024-01-01", "current_balance": "77"},
            {"id": "A2"},
        ])

        assert accounts[0].opening_balance == Decimal("1000.00")
        assert accounts[0].opening_date == date(2024, 1, 1)
        assert accounts[0].cached_current_balance == Decimal("77.00")
        assert accounts[1].opening_balance == Decimal("0.00")
        assert accounts[1].cached_current_balance is None

    def test_to_dict(self):
        account = BankAccount(id="A1", opening_balance=Decimal("10.00"), name="Main")
        data = account.to_dict()
        assert data["opening_balance"] == "10.00"
        assert data["opening_date"] is None
        assert data["name"] == "Main"
