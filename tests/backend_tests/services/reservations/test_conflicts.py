from datetime import datetime
from types import SimpleNamespace

import pytest

from backend.services.reservations.conflicts import ConflictDetector, intervals_overlap
from backend.services.reservations.errors import ReservationConflictError
from backend.services.reservations.schemas import TimeSlot


def _slot(start_hour, end_hour, day=1):
    return TimeSlot(start=datetime(2025, 7, day, start_hour), end=datetime(2025, 7, day, end_hour))


SPOT = SimpleNamespace(id=1, identifier="A1")
OTHER = SimpleNamespace(id=2, identifier="A2")


class FakeRepository:
    """Answers the overlap query from an in-memory list of (spot_id, slot, group_token)."""

    def __init__(self, rows=()):
        self.rows = list(rows)
        self.calls = []

    def find_blocking_overlaps(self, spot_id, start, end, exclude_group_token=None):
        self.calls.append((spot_id, start, end, exclude_group_token))
        probe = SimpleNamespace(start=start, end=end)
        return [
            SimpleNamespace(id=i, group_token=token)
            for i, (row_spot, slot, token) in enumerate(self.rows, start=1)
            if row_spot == spot_id
            and intervals_overlap(slot, probe)
            and (exclude_group_token is None or token != exclude_group_token)
        ]


# ═══════════════════════════════════════════════════════════════════════════════
# intervals_overlap
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize(
    "a, b, expected",
    [
        (_slot(8, 10), _slot(9, 11), True),
        (_slot(8, 12), _slot(9, 10), True),
        (_slot(8, 10), _slot(8, 10), True),
        (_slot(8, 10), _slot(10, 12), False),
        (_slot(8, 10), _slot(11, 12), False),
    ],
)
def test_intervals_overlap(a, b, expected):
    assert intervals_overlap(a, b) is expected
    assert intervals_overlap(b, a) is expected


# ═══════════════════════════════════════════════════════════════════════════════
# ConflictDetector
# ═══════════════════════════════════════════════════════════════════════════════

def test_check_passes_on_free_spot():
    repo = FakeRepository([(OTHER.id, _slot(8, 17), "g1")])
    ConflictDetector(repo).check(SPOT, _slot(8, 17))
    assert repo.calls[0][0] == SPOT.id


def test_check_raises_with_spot_and_interval():
    repo = FakeRepository([(SPOT.id, _slot(8, 17), "g1")])
    with pytest.raises(ReservationConflictError) as exc:
        ConflictDetector(repo).check(SPOT, _slot(16, 18))

    err = exc.value
    assert err.kind == "conflict"
    assert err.spot_identifier == "A1"
    assert err.start == datetime(2025, 7, 1, 16)
    assert "A1" in err.message
    assert "2025-07-01 16:00" in err.message


def test_touching_interval_is_free():
    repo = FakeRepository([(SPOT.id, _slot(8, 12), "g1")])
    ConflictDetector(repo).check(SPOT, _slot(12, 14))


def test_excluded_group_does_not_conflict():
    repo = FakeRepository([(SPOT.id, _slot(8, 12), "g1")])
    detector = ConflictDetector(repo)
    detector.check(SPOT, _slot(9, 11), exclude_group_token="g1")
    with pytest.raises(ReservationConflictError):
        detector.check(SPOT, _slot(9, 11), exclude_group_token="g2")


def test_find_conflicts_returns_rows():
    repo = FakeRepository([(SPOT.id, _slot(8, 10), "g1"), (SPOT.id, _slot(11, 13), "g2")])
    conflicts = ConflictDetector(repo).find_conflicts(SPOT, _slot(9, 12))
    assert [r.group_token for r in conflicts] == ["g1", "g2"]


# --- within one request ---

def test_candidates_on_different_spots_are_independent():
    ConflictDetector.check_candidates([(SPOT, _slot(8, 12)), (OTHER, _slot(8, 12))])


def test_candidates_on_different_days_are_independent():
    ConflictDetector.check_candidates([(SPOT, _slot(8, 12, day=1)), (SPOT, _slot(8, 12, day=2))])


def test_overlapping_candidates_on_same_spot_rejected():
    with pytest.raises(ReservationConflictError):
        ConflictDetector.check_candidates([(SPOT, _slot(8, 12)), (SPOT, _slot(11, 13))])
