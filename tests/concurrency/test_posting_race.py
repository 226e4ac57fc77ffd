"""
Losing a posting race.

Two workers that both miss the idempotency lookup both try to insert a
posting group with the same key; the unique constraint lets one win.  These
tests stage the loser's side: a winning group is already committed and the
loser's lookups are forced to miss once, so its insert hits the constraint.

Verifies:
- With auto_commit the loser rolls back and returns the winner's group
- Inside an outer transaction the loser raises ConcurrentPostingError
- An IntegrityError with no winning group is not a race and propagates
- Sequence values are strictly increasing per tenant and name
"""

from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from farm_kernel.exceptions import ConcurrentPostingError
from farm_kernel.models.document import DocumentStatus
from farm_kernel.models.posting import PostingGroup
from farm_kernel.services.sequence_service import SequenceService
from farm_kernel.utils.idempotency import default_posting_key
from farm_modules.machinery import MachineryChargePostingService


@pytest.fixture
def charge(create_charge, project, landlord, machine, standard_accounts):
    return create_charge(project, landlord, machine, [("10", "25.00")])


@pytest.fixture
def winner(session, charge, tenant_id, posting_date):
    """A group committed by the other worker under the document's default key."""
    group = PostingGroup(
        id=uuid4(),
        tenant_id=tenant_id,
        crop_cycle_id=charge.crop_cycle_id,
        source_type="MACHINERY_CHARGE",
        source_id=charge.id,
        posting_date=posting_date,
        idempotency_key=default_posting_key("machinery_charge", charge.id),
    )
    session.add(group)
    session.commit()
    return group


def _miss_once(monkeypatch, runner):
    """Make the runner's first key and source lookups miss."""
    for name in ("find_by_key", "find_by_source"):
        original = getattr(runner, name)
        calls = {"count": 0}

        def lookup(*args, _original=original, _calls=calls):
            _calls["count"] += 1
            if _calls["count"] == 1:
                return None
            return _original(*args)

        monkeypatch.setattr(runner, name, lookup)


class TestLosingTheRace:

    def test_loser_returns_winner_group(
        self, session, monkeypatch, charge_poster, charge, winner, tenant_id, posting_date, captured_logs
    ):
        _miss_once(monkeypatch, charge_poster._runner)

        group = charge_poster.post(charge.id, tenant_id, posting_date)

        assert group.id == winner.id
        session.refresh(charge)
        assert charge.status == DocumentStatus.DRAFT
        replays = [r for r in captured_logs() if r["message"] == "posting_idempotent_replay"]
        assert replays[-1]["after_race"] is True

    def test_loser_in_outer_transaction_raises(
        self, session, monkeypatch, collaborators, charge, winner, tenant_id, posting_date
    ):
        nested = MachineryChargePostingService(*collaborators, auto_commit=False)
        _miss_once(monkeypatch, nested._runner)
        winning_key = winner.idempotency_key

        with pytest.raises(ConcurrentPostingError) as exc_info:
            nested.post(charge.id, tenant_id, posting_date)

        assert exc_info.value.code == "CONCURRENT_POSTING"
        session.rollback()
        assert exc_info.value.idempotency_key == winning_key
        session.refresh(charge)
        assert charge.status == DocumentStatus.DRAFT


class TestIntegrityFailure:

    def test_constraint_failure_without_winner_propagates(
        self, session, monkeypatch, charge_poster, charge, tenant_id, posting_date, captured_logs
    ):
        def failing_write(*args, **kwargs):
            raise IntegrityError(
                "INSERT INTO allocation_rows", {}, Exception("NOT NULL constraint failed")
            )

        monkeypatch.setattr(charge_poster._runner, "_write_plan", failing_write)

        with pytest.raises(IntegrityError, match="NOT NULL"):
            charge_poster.post(charge.id, tenant_id, posting_date)

        session.refresh(charge)
        assert charge.status == DocumentStatus.DRAFT
        errors = [r for r in captured_logs() if r["message"] == "posting_integrity_error"]
        assert errors[-1]["exc_type"] == "IntegrityError"
        assert "traceback" in errors[-1]


class TestSequence:

    def test_values_are_strictly_increasing(self, session, tenant_id):
        sequence = SequenceService(session)

        values = [sequence.next_value(tenant_id, SequenceService.MACHINERY_CHARGE) for _ in range(5)]
        session.commit()

        assert values == [1, 2, 3, 4, 5]
        assert sequence.current_value(tenant_id, SequenceService.MACHINERY_CHARGE) == 5

    def test_sequences_are_per_tenant(self, session, tenant_id):
        sequence = SequenceService(session)
        other_tenant = uuid4()

        sequence.next_value(tenant_id, SequenceService.MACHINERY_CHARGE)
        sequence.next_value(tenant_id, SequenceService.MACHINERY_CHARGE)

        assert sequence.next_value(other_tenant, SequenceService.MACHINERY_CHARGE) == 1

    def test_rolled_back_value_is_reissued(self, session, tenant_id):
        sequence = SequenceService(session)
        sequence.next_value(tenant_id, SequenceService.MACHINERY_CHARGE)
        session.commit()

        sequence.next_value(tenant_id, SequenceService.MACHINERY_CHARGE)
        session.rollback()

        assert sequence.next_value(tenant_id, SequenceService.MACHINERY_CHARGE) == 2
