"""
Tests for exclusive-treatment and sub-slot occupancy conflicts.
"""

import uuid
import pytest
from datetime import timedelta

from frontdesk.modules.appointments.conflicts import Candidate, ConflictChecker, has_exclusive_conflict
from frontdesk.modules.appointments.treatments import TreatmentType, is_exclusive

from conftest import MONDAY


def candidate(clinic_id, practitioner_id, treatment="fkt", start="09:00", sub_slot=1, id=None, on=MONDAY):
    return Candidate.build(clinic_id, practitioner_id, on, start, sub_slot, treatment, id)


class TestTreatments:

    @pytest.mark.parametrize("treatment", ["drenaje", "drenaje_ultra", "masaje", TreatmentType.MASAJE, "Masaje"])
    def test_exclusive(self, treatment):
        assert is_exclusive(treatment)

    @pytest.mark.parametrize("treatment", ["fkt", "atm", "vestibular", "otro", "unknown", None])
    def test_not_exclusive(self, treatment):
        assert not is_exclusive(treatment)


class TestHasExclusiveConflict:
    """Pure rule over already-narrowed block contents."""

    def test_empty_block_is_ok(self, clinic_id, practitioner_id):
        assert has_exclusive_conflict(candidate(clinic_id, practitioner_id, "masaje"), []).ok

    def test_non_exclusive_coexist(self, clinic_id, practitioner_id):
        existing = [candidate(clinic_id, practitioner_id, "fkt", sub_slot=1, id=uuid.uuid4())]
        assert has_exclusive_conflict(candidate(clinic_id, practitioner_id, "atm", sub_slot=2), existing).ok

    def test_existing_exclusive_blocks_non_exclusive(self, clinic_id, practitioner_id):
        owner = candidate(clinic_id, practitioner_id, "drenaje", id=uuid.uuid4())
        res = has_exclusive_conflict(candidate(clinic_id, practitioner_id, "fkt", sub_slot=3), [owner])
        assert not res.ok
        assert res.conflict.appointment_id == owner.id
        assert res.conflict.treatment_type == "drenaje"
        assert res.conflict.start_time == "09:00"

    def test_exclusive_candidate_blocked_by_anything(self, clinic_id, practitioner_id):
        existing = [candidate(clinic_id, practitioner_id, "fkt", id=uuid.uuid4())]
        assert not has_exclusive_conflict(candidate(clinic_id, practitioner_id, "masaje", sub_slot=2), existing).ok

    def test_candidate_itself_is_ignored(self, clinic_id, practitioner_id):
        me = uuid.uuid4()
        existing = [candidate(clinic_id, practitioner_id, "masaje", id=me)]
        assert has_exclusive_conflict(candidate(clinic_id, practitioner_id, "masaje", id=me), existing).ok


class TestConflictChecker:

    async def test_exclusive_in_same_block_conflicts(self, session, clinic_id, practitioner_id, add_appointment):
        await add_appointment(treatment_type="drenaje")
        res = await ConflictChecker(session).check_exclusive(candidate(clinic_id, practitioner_id, "fkt", sub_slot=2))
        assert not res.ok

    async def test_different_time_is_unaffected(self, session, clinic_id, practitioner_id, add_appointment):
        await add_appointment(treatment_type="drenaje")
        res = await ConflictChecker(session).check_exclusive(candidate(clinic_id, practitioner_id, "fkt", start="09:30"))
        assert res.ok

    async def test_other_practitioner_and_date_are_unaffected(self, session, clinic_id, practitioner_id, add_appointment):
        await add_appointment(treatment_type="masaje", practitioner_id=uuid.uuid4())
        await add_appointment(treatment_type="masaje", date=MONDAY + timedelta(days=1))
        res = await ConflictChecker(session).check_exclusive(candidate(clinic_id, practitioner_id, "fkt"))
        assert res.ok

    async def test_cancelled_rows_do_not_conflict(self, session, clinic_id, practitioner_id, add_appointment):
        await add_appointment(treatment_type="masaje", status="cancelled")
        checker = ConflictChecker(session)
        assert (await checker.check_exclusive(candidate(clinic_id, practitioner_id, "fkt"))).ok
        assert not await checker.is_slot_taken(clinic_id, practitioner_id, MONDAY, "09:00", 1)

    async def test_editing_excludes_own_row(self, session, clinic_id, practitioner_id, add_appointment):
        own = await add_appointment(treatment_type="masaje")
        checker = ConflictChecker(session)
        assert (await checker.check_exclusive(candidate(clinic_id, practitioner_id, "drenaje"), exclude_id=own.id)).ok
        assert not await checker.is_slot_taken(clinic_id, practitioner_id, MONDAY, "09:00", 1, exclude_id=own.id)

    async def test_slot_taken_matches_exact_sub_slot(self, session, clinic_id, practitioner_id, add_appointment):
        await add_appointment(sub_slot=2)
        checker = ConflictChecker(session)
        assert await checker.is_slot_taken(clinic_id, practitioner_id, MONDAY, "09:00", 2)
        assert not await checker.is_slot_taken(clinic_id, practitioner_id, MONDAY, "09:00", 3)

    async def test_slot_lookup_normalizes_inputs(self, session, clinic_id, practitioner_id, add_appointment):
        await add_appointment(sub_slot=1)
        # legacy 0-based sub-slot and loose time point at the same position
        assert await ConflictChecker(session).is_slot_taken(clinic_id, practitioner_id, MONDAY, "9:00:00", 0)

    async def test_full_block_rejects_every_sub_slot(self, session, clinic_id, practitioner_id, add_appointment):
        for n in range(1, 6):
            await add_appointment(sub_slot=n)
        checker = ConflictChecker(session)
        for n in range(1, 6):
            assert await checker.is_slot_taken(clinic_id, practitioner_id, MONDAY, "09:00", n)
        # invalid sub-slots fall back to 1, which is taken
        assert await checker.is_slot_taken(clinic_id, practitioner_id, MONDAY, "09:00", 9)
