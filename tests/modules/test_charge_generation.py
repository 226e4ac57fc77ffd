"""
Machinery charge generation from posted work logs.

Verifies:
- Posted, uncharged logs in range become one posted charge per pool scope
- Lines are priced at round(usage_qty * rate, 2) and logs are reserved
- Charge numbers come from the tenant sequence (MCH-000001, ...)
- Replaying the same call returns the same posting groups
- No usage raises NoChargeableUsageError
- A missing rate fails its scope without leaving anything behind
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from farm_kernel.exceptions import (
    DocumentNotFoundError,
    MissingRateError,
    NoChargeableUsageError,
)
from farm_kernel.models.document import DocumentStatus
from farm_kernel.models.posting import PostingGroup
from farm_kernel.services.sequence_service import SequenceService
from farm_modules.machinery import MachineryCharge, generation_key
from farm_modules.machinery.models import ChargeGenerationRequest

FROM_DATE = date(2024, 6, 1)
TO_DATE = date(2024, 6, 30)


@pytest.fixture
def posted_log(create_work_log, work_log_poster, machine, project, tenant_id):
    """Create a work log and post it on its work date."""

    def _posted_log(usage_qty: str, pool_scope: str = "SHARED", on=None, work_machine=None,
                    work_date: date = date(2024, 6, 10)):
        work_log = create_work_log(
            work_machine or machine, on or project, usage_qty, work_date=work_date, pool_scope=pool_scope
        )
        work_log_poster.post(work_log.id, tenant_id, work_date)
        return work_log

    return _posted_log


@pytest.fixture
def tractor_rate(create_rate_card, machine):
    return create_rate_card("25.00", machine=machine)


def _charge_for(session, group) -> MachineryCharge:
    return session.get(MachineryCharge, group.source_id)


def _charge_count(session, tenant_id) -> int:
    return session.execute(
        select(func.count()).select_from(MachineryCharge).where(MachineryCharge.tenant_id == tenant_id)
    ).scalar_one()


class TestHappyPath:

    def test_generates_posted_charge(
        self, session, charge_generator, posted_log, tractor_rate, project, landlord,
        tenant_id, standard_accounts
    ):
        first = posted_log("10")
        second = posted_log("2.5", work_date=date(2024, 6, 12))

        groups = charge_generator.generate(
            tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE, charge_date=date(2024, 6, 30)
        )

        assert len(groups) == 1
        group = groups[0]
        assert group.source_type == "MACHINERY_CHARGE"
        assert group.posting_date == date(2024, 6, 30)
        assert group.allocation_rows[0].amount == Decimal("312.50")
        assert group.is_balanced

        charge = _charge_for(session, group)
        assert charge.charge_no == "MCH-000001"
        assert charge.status == DocumentStatus.POSTED
        assert charge.pool_scope == "SHARED"
        assert charge.landlord_party_id == landlord.id
        assert charge.from_date == FROM_DATE
        assert charge.to_date == TO_DATE
        assert charge.total_amount == Decimal("312.50")
        assert sorted(line.amount for line in charge.lines) == [Decimal("62.50"), Decimal("250.00")]
        assert {line.rate_card_id for line in charge.lines} == {tractor_rate.id}

        session.refresh(first)
        session.refresh(second)
        assert first.machinery_charge_id == charge.id
        assert second.machinery_charge_id == charge.id

    def test_line_amounts_are_rounded(
        self, session, charge_generator, posted_log, create_rate_card, machine, project, landlord,
        tenant_id, standard_accounts
    ):
        create_rate_card("33.333", machine=machine)
        posted_log("1.5")

        group = charge_generator.generate(
            tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE, charge_date=TO_DATE
        )[0]

        assert _charge_for(session, group).lines[0].amount == Decimal("50.00")

    def test_uses_generation_key(
        self, charge_generator, posted_log, tractor_rate, project, landlord, tenant_id, standard_accounts
    ):
        posted_log("4")

        group = charge_generator.generate(
            tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE, charge_date=TO_DATE
        )[0]

        request = ChargeGenerationRequest(tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE)
        assert group.idempotency_key == generation_key(request, "SHARED")
        assert group.idempotency_key == (
            f"machinery_charge_generation:{project.id}:{landlord.id}:SHARED:2024-06-01:2024-06-30"
        )

    def test_charge_numbers_increase(
        self, session, charge_generator, posted_log, tractor_rate, project, landlord,
        tenant_id, standard_accounts
    ):
        posted_log("1", work_date=date(2024, 6, 5))
        posted_log("1", work_date=date(2024, 7, 5))

        june = charge_generator.generate(
            tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE, charge_date=TO_DATE
        )[0]
        july = charge_generator.generate(
            tenant_id, project.id, landlord.id, date(2024, 7, 1), date(2024, 7, 31),
            charge_date=date(2024, 7, 31),
        )[0]

        assert _charge_for(session, june).charge_no == "MCH-000001"
        assert _charge_for(session, july).charge_no == "MCH-000002"
        assert SequenceService(session).current_value(tenant_id, SequenceService.MACHINERY_CHARGE) == 2


class TestScopes:

    def test_one_charge_per_scope(
        self, session, charge_generator, posted_log, tractor_rate, project, landlord,
        tenant_id, standard_accounts
    ):
        posted_log("2", pool_scope="HARI_ONLY")
        posted_log("4", pool_scope="SHARED")

        groups = charge_generator.generate(
            tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE, charge_date=TO_DATE
        )

        charges = [_charge_for(session, group) for group in groups]
        assert [c.pool_scope for c in charges] == ["SHARED", "HARI_ONLY"]
        assert [c.total_amount for c in charges] == [Decimal("100.00"), Decimal("50.00")]
        assert [g.allocation_rows[0].allocation_scope for g in groups] == ["SHARED", "HARI_ONLY"]

    def test_scope_filter(
        self, session, charge_generator, posted_log, tractor_rate, project, landlord,
        tenant_id, standard_accounts
    ):
        shared = posted_log("4", pool_scope="SHARED")
        posted_log("2", pool_scope="HARI_ONLY")

        groups = charge_generator.generate(
            tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE, pool_scope="HARI_ONLY",
            charge_date=TO_DATE,
        )

        assert len(groups) == 1
        assert _charge_for(session, groups[0]).pool_scope == "HARI_ONLY"
        session.refresh(shared)
        assert shared.machinery_charge_id is None


class TestReplay:

    def test_second_call_returns_same_groups(
        self, session, charge_generator, posted_log, tractor_rate, project, landlord,
        tenant_id, standard_accounts
    ):
        posted_log("2", pool_scope="HARI_ONLY")
        posted_log("4", pool_scope="SHARED")

        first = charge_generator.generate(
            tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE, charge_date=TO_DATE
        )
        second = charge_generator.generate(
            tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE, charge_date=TO_DATE
        )

        assert {g.id for g in second} == {g.id for g in first}
        assert _charge_count(session, tenant_id) == 2

    def test_new_log_in_generated_scope_stays_uncharged(
        self, session, charge_generator, posted_log, tractor_rate, project, landlord,
        tenant_id, standard_accounts, captured_logs
    ):
        posted_log("4")
        first = charge_generator.generate(
            tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE, charge_date=TO_DATE
        )
        late = posted_log("1", work_date=date(2024, 6, 20))

        second = charge_generator.generate(
            tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE, charge_date=TO_DATE
        )

        assert [g.id for g in second] == [g.id for g in first]
        session.refresh(late)
        assert late.machinery_charge_id is None
        replayed = [r for r in captured_logs() if r["message"] == "charge_generation_scope_replayed"]
        assert replayed[0]["uncharged_log_count"] == 1


class TestFailures:

    def test_no_usage(self, charge_generator, project, landlord, tenant_id, standard_accounts):
        with pytest.raises(NoChargeableUsageError) as exc_info:
            charge_generator.generate(tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE)
        assert exc_info.value.code == "NO_CHARGEABLE_USAGE"

    def test_draft_logs_are_not_chargeable(
        self, charge_generator, create_work_log, tractor_rate, machine, project, landlord,
        tenant_id, standard_accounts
    ):
        create_work_log(machine, project, "5")

        with pytest.raises(NoChargeableUsageError):
            charge_generator.generate(tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE)

    def test_logs_outside_range_are_not_chargeable(
        self, charge_generator, posted_log, tractor_rate, project, landlord, tenant_id, standard_accounts
    ):
        posted_log("5", work_date=date(2024, 5, 31))
        posted_log("5", work_date=date(2024, 7, 1))

        with pytest.raises(NoChargeableUsageError):
            charge_generator.generate(tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE)

    def test_reversed_logs_are_not_chargeable(
        self, charge_generator, work_log_poster, posted_log, tractor_rate, project, landlord,
        tenant_id, standard_accounts
    ):
        work_log = posted_log("5")
        work_log_poster.reverse(work_log.id, tenant_id, date(2024, 6, 10))

        with pytest.raises(NoChargeableUsageError):
            charge_generator.generate(tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE)

    def test_missing_rate_leaves_nothing_behind(
        self, session, charge_generator, posted_log, project, landlord, tenant_id, standard_accounts
    ):
        work_log = posted_log("5")

        with pytest.raises(MissingRateError) as exc_info:
            charge_generator.generate(tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE)

        assert exc_info.value.unresolved[0]["work_log_id"] == str(work_log.id)
        assert _charge_count(session, tenant_id) == 0
        session.refresh(work_log)
        assert work_log.machinery_charge_id is None
        assert SequenceService(session).current_value(tenant_id, SequenceService.MACHINERY_CHARGE) is None

    def test_earlier_scope_stays_committed(
        self, session, charge_generator, posted_log, create_machine, tractor_rate, project, landlord,
        tenant_id, standard_accounts
    ):
        unpriced = create_machine(machine_type="SPRAYER")
        posted_log("4", pool_scope="SHARED")
        orphan = posted_log("3", pool_scope="HARI_ONLY", work_machine=unpriced)

        with pytest.raises(MissingRateError):
            charge_generator.generate(
                tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE, charge_date=TO_DATE
            )

        charges = session.execute(
            select(MachineryCharge).where(MachineryCharge.tenant_id == tenant_id)
        ).scalars().all()
        assert [c.pool_scope for c in charges] == ["SHARED"]
        assert charges[0].status == DocumentStatus.POSTED
        session.refresh(orphan)
        assert orphan.machinery_charge_id is None

    def test_unknown_project(self, charge_generator, landlord, tenant_id):
        with pytest.raises(DocumentNotFoundError):
            charge_generator.generate(tenant_id, uuid4(), landlord.id, FROM_DATE, TO_DATE)

    def test_unknown_landlord(self, charge_generator, project, tenant_id):
        with pytest.raises(DocumentNotFoundError):
            charge_generator.generate(tenant_id, project.id, uuid4(), FROM_DATE, TO_DATE)

    def test_inverted_range(self, charge_generator, project, landlord, tenant_id):
        with pytest.raises(ValueError):
            charge_generator.generate(tenant_id, project.id, landlord.id, TO_DATE, FROM_DATE)

    def test_failure_writes_no_posting_group(
        self, session, charge_generator, posted_log, project, landlord, tenant_id, standard_accounts
    ):
        posted_log("5")
        before = session.execute(
            select(func.count()).select_from(PostingGroup).where(PostingGroup.tenant_id == tenant_id)
        ).scalar_one()

        with pytest.raises(MissingRateError):
            charge_generator.generate(tenant_id, project.id, landlord.id, FROM_DATE, TO_DATE)

        after = session.execute(
            select(func.count()).select_from(PostingGroup).where(PostingGroup.tenant_id == tenant_id)
        ).scalar_one()
        assert after == before
