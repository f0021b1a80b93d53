"""
Bounded candidate selector

Keeps the K least-contested distinct lottery slots seen so far.
"""
import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .normalize import EntryKey, entry_key
from ..common.models import DesiredEntry

logger = logging.getLogger(__name__)


class BoundedCandidateSelector:
    """
    Minimum-contention top-K set.

    Explorer workers finish in arbitrary order and all feed this one object,
    so every update goes through ``offer`` which holds an asyncio lock.
    Whatever the arrival order, the accepted set is the K lowest-contention
    distinct entries offered.
    """

    def __init__(self, capacity: int, exclude: Iterable[DesiredEntry] = ()):
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.capacity = capacity
        self._accepted: Dict[EntryKey, Tuple[int, int, DesiredEntry]] = {}
        self._excluded = {entry_key(entry) for entry in exclude}
        self._arrivals = 0
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._accepted)

    async def offer(self, contention: int, entry: DesiredEntry) -> bool:
        """Offer a candidate; returns True if it was accepted"""
        async with self._lock:
            return self._offer(contention, entry)

    def _offer(self, contention: int, entry: DesiredEntry) -> bool:
        key = entry_key(entry)
        if key in self._accepted or key in self._excluded:
            logger.debug(f"Rejected duplicate (applicants {contention}): {entry.describe()}")
            return False

        self._arrivals += 1
        if len(self._accepted) < self.capacity:
            self._accepted[key] = (contention, self._arrivals, entry)
            logger.info(f"Adopted (applicants {contention}): {entry.describe()}")
            return True

        worst_key = self._worst_key()
        worst_contention = self._accepted[worst_key][0]
        if contention < worst_contention:
            del self._accepted[worst_key]
            self._accepted[key] = (contention, self._arrivals, entry)
            logger.info(
                f"Adopted (applicants {contention}, replaced {worst_contention}): {entry.describe()}"
            )
            return True

        logger.debug(f"Passed over (applicants {contention}): {entry.describe()}")
        return False

    def _worst_key(self) -> Optional[EntryKey]:
        worst: Optional[EntryKey] = None
        for key, (contention, arrival, _) in self._accepted.items():
            if worst is None:
                worst = key
                continue
            worst_contention, worst_arrival, _ = self._accepted[worst]
            # ties evict the most recent arrival
            if (contention, arrival) > (worst_contention, worst_arrival):
                worst = key
        return worst

    def contentions(self) -> List[int]:
        return sorted(contention for contention, _, _ in self._accepted.values())

    def results(self) -> List[DesiredEntry]:
        """Accepted entries, least contested first"""
        ranked = sorted(self._accepted.values(), key=lambda item: (item[0], item[1]))
        return [entry for _, _, entry in ranked]
