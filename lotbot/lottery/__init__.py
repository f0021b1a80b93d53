"""
Lottery engine: entry normalization, slot resolution and candidate selection
"""
from .normalize import diff_entries, entry_key, normalize_entry
from .resolver import resolve_slots
from .selector import BoundedCandidateSelector

__all__ = [
    "diff_entries",
    "entry_key",
    "normalize_entry",
    "resolve_slots",
    "BoundedCandidateSelector",
]
