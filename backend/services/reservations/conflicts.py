"""
Conflict Detector

Decides whether a candidate interval on a spot overlaps an existing
blocking reservation (status active or manual_override). Cancelled and
done reservations never block.
"""

import logging
from collections import defaultdict
from typing import Iterable, List, Optional, Tuple

from .errors import ReservationConflictError
from .schemas import TimeSlot

logger = logging.getLogger(__name__)


def intervals_overlap(a, b) -> bool:
    """
    Overlap test for half-open intervals [a.start, a.end) and [b.start, b.end).

    Touching intervals (a.end == b.start) do not overlap.
    """
    return a.start < b.end and a.end > b.start


def _conflict(spot, slot: TimeSlot) -> ReservationConflictError:
    return ReservationConflictError(
        f"Spot {spot.identifier} is already booked during {slot.label()}",
        spot_identifier=spot.identifier,
        start=slot.start,
        end=slot.end,
    )


class ConflictDetector:
    """
    Runs the application-level conflict check against the repository.

    The storage-level unique index is the safety net behind this check;
    this class produces the readable error message.
    """

    def __init__(self, repository):
        self.repository = repository

    def find_conflicts(self, spot, slot: TimeSlot, exclude_group_token: Optional[str] = None) -> List:
        return self.repository.find_blocking_overlaps(
            spot.id, slot.start, slot.end, exclude_group_token=exclude_group_token
        )

    def check(self, spot, slot: TimeSlot, exclude_group_token: Optional[str] = None) -> None:
        """
        Raises:
            ReservationConflictError: if the slot overlaps a blocking reservation of the spot
        """
        conflicts = self.find_conflicts(spot, slot, exclude_group_token)
        if conflicts:
            logger.warning(
                "Conflict on spot %s (%s) with reservation(s) %s",
                spot.identifier, slot.label(), [r.id for r in conflicts],
            )
            raise _conflict(spot, slot)

    @staticmethod
    def check_candidates(candidates: Iterable[Tuple[object, TimeSlot]]) -> None:
        """
        Make sure the candidates of one request do not overlap each other on the same spot.
        """
        by_spot = defaultdict(list)
        for spot, slot in candidates:
            for earlier in by_spot[spot.id]:
                if intervals_overlap(earlier, slot):
                    raise _conflict(spot, slot)
            by_spot[spot.id].append(slot)
