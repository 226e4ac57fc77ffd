"""
Inventory goods receipts and issues.

Verifies:
- GRN debits INVENTORY_INPUTS and credits AP (supplier) or CASH
- Receipts update weighted average cost
- Issues are valued at WAC and allocated to the project's party
- Issuing more than is on hand raises InsufficientStockError and writes nothing
- Reversals restore stock on hand
"""

from datetime import date
from decimal import Decimal

import pytest

from farm_kernel.exceptions import DocumentValidationError, InsufficientStockError
from farm_kernel.models.document import DocumentStatus
from farm_modules.inventory import InventorySelector


@pytest.fixture
def store(create_store):
    return create_store()


@pytest.fixture
def urea(create_item):
    return create_item("Urea", "BAG")


@pytest.fixture
def seed(create_item):
    return create_item("Wheat seed", "KG")


@pytest.fixture
def inventory(session):
    return InventorySelector(session)


def _on_hand(inventory, tenant_id, store, item):
    return inventory.stock_on_hand(tenant_id, store.id, item.id)[0]


class TestGoodsReceipt:

    def test_supplier_grn_credits_ap(
        self, session, grn_poster, create_grn, create_party, store, urea, seed,
        tenant_id, posting_date, standard_accounts
    ):
        supplier = create_party("Agri Supplies", "VENDOR")
        grn = create_grn(store, [(urea, "10", "12.50"), (seed, "40", "1.10")], supplier=supplier)

        group = grn_poster.post(grn.id, tenant_id, posting_date)

        assert group.source_type == "INVENTORY_GRN"
        assert group.crop_cycle_id is None
        assert group.allocation_rows == []
        entries = {e.account_id: e for e in group.ledger_entries}
        assert entries[standard_accounts["INVENTORY_INPUTS"].id].debit_amount == Decimal("169.00")
        assert entries[standard_accounts["AP"].id].credit_amount == Decimal("169.00")
        session.refresh(grn)
        assert grn.status == DocumentStatus.POSTED

    def test_cash_grn_credits_cash(
        self, grn_poster, create_grn, store, urea, tenant_id, posting_date, standard_accounts
    ):
        grn = create_grn(store, [(urea, "1", "20.00")])

        group = grn_poster.post(grn.id, tenant_id, posting_date)

        credit = next(e for e in group.ledger_entries if e.credit_amount > 0)
        assert credit.account_id == standard_accounts["CASH"].id

    def test_receipts_update_wac(
        self, grn_poster, create_grn, inventory, store, urea, tenant_id, posting_date, standard_accounts
    ):
        grn_poster.post(create_grn(store, [(urea, "10", "10.00")]).id, tenant_id, posting_date)
        grn_poster.post(create_grn(store, [(urea, "30", "14.00")]).id, tenant_id, posting_date)

        stock = _on_hand(inventory, tenant_id, store, urea)
        assert stock.qty_on_hand == Decimal("40")
        assert stock.value_on_hand == Decimal("520.00")
        assert stock.wac_cost == Decimal("13")

    def test_grn_without_lines(self, grn_poster, create_grn, store, tenant_id, posting_date, standard_accounts):
        grn = create_grn(store, [])

        with pytest.raises(DocumentValidationError, match="no lines"):
            grn_poster.post(grn.id, tenant_id, posting_date)

    def test_grn_reversal_removes_stock(
        self, grn_poster, create_grn, inventory, store, urea, tenant_id, posting_date, standard_accounts
    ):
        grn = create_grn(store, [(urea, "10", "10.00")])
        grn_poster.post(grn.id, tenant_id, posting_date)

        grn_poster.reverse(grn.id, tenant_id, posting_date, "wrong store")

        stock = _on_hand(inventory, tenant_id, store, urea)
        assert stock.qty_on_hand == Decimal("0")
        assert stock.value_on_hand == Decimal("0")
        assert stock.wac_cost == Decimal("0")


class TestIssue:

    @pytest.fixture
    def stocked(self, grn_poster, create_grn, store, urea, tenant_id, posting_date, standard_accounts):
        grn_poster.post(create_grn(store, [(urea, "20", "15.00")]).id, tenant_id, posting_date)

    def test_issue_at_wac(
        self, session, issue_poster, create_issue, inventory, store, urea, project, hari,
        tenant_id, posting_date, standard_accounts, stocked
    ):
        issue = create_issue(store, project, [(urea, "4")])

        group = issue_poster.post(issue.id, tenant_id, posting_date)

        assert group.source_type == "INVENTORY_ISSUE"
        assert group.crop_cycle_id == project.crop_cycle_id
        row = group.allocation_rows[0]
        assert row.allocation_type == "POOL_SHARE"
        assert row.amount == Decimal("60.00")
        assert row.party_id == hari.id
        entries = {e.account_id: e for e in group.ledger_entries}
        assert entries[standard_accounts["INPUTS_EXPENSE"].id].debit_amount == Decimal("60.00")
        assert entries[standard_accounts["INVENTORY_INPUTS"].id].credit_amount == Decimal("60.00")

        session.refresh(issue)
        assert issue.lines[0].unit_cost_snapshot == Decimal("15")
        assert issue.lines[0].line_total == Decimal("60.00")
        assert _on_hand(inventory, tenant_id, store, urea).qty_on_hand == Decimal("16")

    def test_value_lines_does_not_write(
        self, issue_poster, create_issue, inventory, store, urea, project, tenant_id, stocked
    ):
        issue = create_issue(store, project, [(urea, "2"), (urea, "3")])

        valuations = issue_poster.value_lines(issue, tenant_id)

        assert [v.line_total for v in valuations] == [Decimal("30.00"), Decimal("45.00")]
        assert _on_hand(inventory, tenant_id, store, urea).qty_on_hand == Decimal("20")

    def test_insufficient_stock(
        self, session, issue_poster, create_issue, inventory, store, urea, project,
        tenant_id, posting_date, stocked
    ):
        issue = create_issue(store, project, [(urea, "15"), (urea, "6")])

        with pytest.raises(InsufficientStockError) as exc_info:
            issue_poster.post(issue.id, tenant_id, posting_date)

        assert exc_info.value.code == "INSUFFICIENT_STOCK"
        assert Decimal(exc_info.value.required) == Decimal("21")
        session.refresh(issue)
        assert issue.status == DocumentStatus.DRAFT
        assert _on_hand(inventory, tenant_id, store, urea).qty_on_hand == Decimal("20")

    def test_unstocked_item(
        self, issue_poster, create_issue, create_item, store, project, tenant_id, posting_date, stocked
    ):
        potash = create_item("Potash", "BAG")
        issue = create_issue(store, project, [(potash, "1")])

        with pytest.raises(InsufficientStockError):
            issue_poster.post(issue.id, tenant_id, posting_date)

    def test_project_required(
        self, issue_poster, create_issue, store, urea, tenant_id, posting_date, stocked
    ):
        issue = create_issue(store, None, [(urea, "1")])

        with pytest.raises(DocumentValidationError, match="crop cycle and project"):
            issue_poster.post(issue.id, tenant_id, posting_date)

    def test_issue_reversal_restores_stock(
        self, issue_poster, create_issue, inventory, store, urea, project,
        tenant_id, posting_date, posting_selector, stocked
    ):
        issue = create_issue(store, project, [(urea, "5")])
        original = issue_poster.post(issue.id, tenant_id, posting_date)

        reversal = issue_poster.reverse(issue.id, tenant_id, date(2024, 6, 20), "returned to store")

        stock = _on_hand(inventory, tenant_id, store, urea)
        assert stock.qty_on_hand == Decimal("20")
        assert stock.value_on_hand == Decimal("300.00")
        amount, _ = posting_selector.allocation_totals(tenant_id, [original.id, reversal.id])
        assert amount == Decimal("0")

    def test_movement_history(
        self, issue_poster, create_issue, inventory, store, urea, project, tenant_id, posting_date, stocked
    ):
        issue = create_issue(store, project, [(urea, "5")])
        group = issue_poster.post(issue.id, tenant_id, posting_date)

        movements = inventory.movements(tenant_id, store_id=store.id, item_id=urea.id)

        assert sorted(m.movement_type for m in movements) == ["GRN", "ISSUE"]
        issued = next(m for m in movements if m.movement_type == "ISSUE")
        assert issued.posting_group_id == group.id
        assert issued.qty_delta == Decimal("-5")
        assert issued.value_delta == Decimal("-75.00")
        assert issued.source_id == issue.id
