"""
Machine work log posting: usage only.

Verifies:
- One MACHINERY_USAGE row with quantity in the machine's meter unit
- No ledger entries
- Negative usage and projects without a party are rejected
"""

from decimal import Decimal

import pytest

from farm_kernel.exceptions import DocumentValidationError
from farm_kernel.models.document import DocumentStatus


class TestWorkLogPosting:

    def test_posts_usage_row(
        self, session, work_log_poster, create_work_log, machine, project, hari, tenant_id, posting_date
    ):
        work_log = create_work_log(machine, project, "12.25", pool_scope="HARI_ONLY")

        group = work_log_poster.post(work_log.id, tenant_id, posting_date)

        assert group.source_type == "MACHINE_WORK_LOG"
        assert group.ledger_entries == []
        row = group.allocation_rows[0]
        assert row.allocation_type == "MACHINERY_USAGE"
        assert row.quantity == Decimal("12.25")
        assert row.unit == "HOURS"
        assert row.amount is None
        assert row.machine_id == machine.id
        assert row.party_id == hari.id
        assert row.rule_snapshot["pool_scope"] == "HARI_ONLY"

        session.refresh(work_log)
        assert work_log.status == DocumentStatus.POSTED
        assert work_log.posting_date == posting_date

    def test_zero_usage_is_allowed(self, work_log_poster, create_work_log, machine, project, tenant_id, posting_date):
        work_log = create_work_log(machine, project, "0")

        group = work_log_poster.post(work_log.id, tenant_id, posting_date)
        assert group.allocation_rows[0].quantity == Decimal("0")

    def test_km_meter(self, work_log_poster, create_machine, create_work_log, project, tenant_id, posting_date):
        truck = create_machine(machine_type="TRUCK", meter_unit="KM")
        work_log = create_work_log(truck, project, "84")

        group = work_log_poster.post(work_log.id, tenant_id, posting_date)
        assert group.allocation_rows[0].unit == "KM"

    def test_negative_usage_rejected(
        self, session, work_log_poster, create_work_log, machine, project, tenant_id, posting_date
    ):
        work_log = create_work_log(machine, project, "-1")

        with pytest.raises(DocumentValidationError, match="usage_qty"):
            work_log_poster.post(work_log.id, tenant_id, posting_date)
        session.refresh(work_log)
        assert work_log.status == DocumentStatus.DRAFT

    def test_project_without_party_rejected(
        self, work_log_poster, create_project, create_work_log, crop_cycle, machine, tenant_id, posting_date
    ):
        orphan = create_project(crop_cycle, None, name="Fallow")
        work_log = create_work_log(machine, orphan, "2")

        with pytest.raises(DocumentValidationError, match="has no party"):
            work_log_poster.post(work_log.id, tenant_id, posting_date)
