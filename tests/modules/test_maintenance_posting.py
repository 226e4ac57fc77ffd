"""
Machine maintenance job posting.

Verifies:
- Vendor jobs credit AP, in-house jobs credit ACCRUED_EXPENSES
- The posting group carries no crop cycle; only accounting periods apply
- Jobs without lines or with a zero total are rejected
- Reversal mirrors the expense
"""

from datetime import date
from decimal import Decimal

import pytest

from farm_kernel.exceptions import DocumentValidationError, PeriodClosedError
from farm_kernel.models.document import DocumentStatus
from farm_kernel.models.period import CropCycleStatus, PeriodStatus


class TestMaintenancePosting:

    def test_vendor_job_credits_ap(
        self, session, maintenance_poster, create_maintenance_job, create_party, machine,
        tenant_id, posting_date, standard_accounts
    ):
        vendor = create_party("Tractor Mart", "VENDOR")
        job = create_maintenance_job(machine, ["120.00", "35.50"], vendor=vendor)

        group = maintenance_poster.post(job.id, tenant_id, posting_date)

        assert group.source_type == "MACHINE_MAINTENANCE_JOB"
        assert group.crop_cycle_id is None
        entries = {e.account_id: e for e in group.ledger_entries}
        assert entries[standard_accounts["MACHINERY_MAINTENANCE_EXPENSE"].id].debit_amount == Decimal("155.50")
        assert entries[standard_accounts["AP"].id].credit_amount == Decimal("155.50")

        row = group.allocation_rows[0]
        assert row.allocation_type == "MACHINERY_MAINTENANCE"
        assert row.amount == Decimal("155.50")
        assert row.machine_id == machine.id
        assert row.party_id == vendor.id
        assert len(row.rule_snapshot["lines"]) == 2

        session.refresh(job)
        assert job.status == DocumentStatus.POSTED
        assert job.total_amount == Decimal("155.50")

    def test_in_house_job_credits_accrued_expenses(
        self, maintenance_poster, create_maintenance_job, machine, tenant_id, posting_date, standard_accounts
    ):
        job = create_maintenance_job(machine, ["80.00"])

        group = maintenance_poster.post(job.id, tenant_id, posting_date)

        credit = next(e for e in group.ledger_entries if e.credit_amount > 0)
        assert credit.account_id == standard_accounts["ACCRUED_EXPENSES"].id
        assert group.allocation_rows[0].party_id is None

    def test_closed_crop_cycle_does_not_apply(
        self, session, maintenance_poster, create_maintenance_job, machine, crop_cycle,
        tenant_id, posting_date, standard_accounts
    ):
        crop_cycle.status = CropCycleStatus.CLOSED
        session.commit()
        job = create_maintenance_job(machine, ["80.00"])

        group = maintenance_poster.post(job.id, tenant_id, posting_date)
        assert group.is_balanced

    def test_closed_accounting_period_rejects(
        self, maintenance_poster, create_maintenance_job, create_accounting_period, machine,
        tenant_id, posting_date, standard_accounts
    ):
        create_accounting_period("2024-06", date(2024, 6, 1), date(2024, 6, 30), PeriodStatus.CLOSED)
        job = create_maintenance_job(machine, ["80.00"])

        with pytest.raises(PeriodClosedError):
            maintenance_poster.post(job.id, tenant_id, posting_date)

    def test_job_without_lines(
        self, maintenance_poster, create_maintenance_job, machine, tenant_id, posting_date, standard_accounts
    ):
        job = create_maintenance_job(machine, [])

        with pytest.raises(DocumentValidationError, match="no lines"):
            maintenance_poster.post(job.id, tenant_id, posting_date)

    def test_zero_total(
        self, maintenance_poster, create_maintenance_job, machine, tenant_id, posting_date, standard_accounts
    ):
        job = create_maintenance_job(machine, ["0.00"])

        with pytest.raises(DocumentValidationError, match="amount must be positive"):
            maintenance_poster.post(job.id, tenant_id, posting_date)

    def test_reversal(
        self, session, maintenance_poster, create_maintenance_job, machine, tenant_id, posting_date,
        posting_selector, standard_accounts
    ):
        job = create_maintenance_job(machine, ["80.00"])
        original = maintenance_poster.post(job.id, tenant_id, posting_date)

        reversal = maintenance_poster.reverse(job.id, tenant_id, posting_date, "wrong machine")

        assert reversal.allocation_rows[0].amount == Decimal("-80.00")
        assert reversal.crop_cycle_id is None
        amount, _ = posting_selector.allocation_totals(tenant_id, [original.id, reversal.id])
        assert amount == Decimal("0")
        session.refresh(job)
        assert job.status == DocumentStatus.REVERSED
