"""
Time-range slot resolver

The portal offers a room's day as discrete blocks (9:00-10:00, 10:00-11:00,
...). A desired range like 9:00-12:00 has to be applied for by clicking every
block that makes it up.
"""
import logging
from typing import List, Sequence

from .normalize import to_minutes
from ..common.errors import SlotResolutionError
from ..common.models import PortalSlot, TimeRange

logger = logging.getLogger(__name__)


def resolve_slots(slots: Sequence[PortalSlot], wanted: TimeRange) -> List[PortalSlot]:
    """
    Pick the consecutive slots covering ``wanted``.

    Slots are sorted by start time. Starting from a slot whose [start, end)
    contains the desired start, the following slots are absorbed while the
    covered end is short of the desired end. Coverage only ever grows, so
    overlapping or duplicated slots are harmless; a slot that starts after the
    covered end leaves a gap and stops the run.

    Raises:
        SlotResolutionError: if no run of slots reaches the desired end
    """
    wanted_start = to_minutes(wanted.start)
    wanted_end = to_minutes(wanted.end)
    ordered = sorted(slots, key=lambda slot: (slot.start_minutes, slot.end_minutes))

    for index, first in enumerate(ordered):
        if not (first.start_minutes <= wanted_start < first.end_minutes):
            continue

        chosen = [first]
        covered_end = first.end_minutes
        cursor = index + 1

        while covered_end < wanted_end and cursor < len(ordered):
            following = ordered[cursor]
            if following.start_minutes > covered_end:
                break
            chosen.append(following)
            covered_end = max(covered_end, following.end_minutes)
            cursor += 1

        if covered_end >= wanted_end:
            logger.debug(
                f"Resolved {wanted} to {len(chosen)} slots: "
                f"{', '.join(f'{s.start}-{s.end}' for s in chosen)}"
            )
            return chosen

    raise SlotResolutionError(f"no matching time range for {wanted} among {len(ordered)} lottery slots")
