"""Helpers for building PostgREST filter strings."""

import re
from typing import Iterable, List

# Characters with meaning inside an or=(...) filter
_RESERVED = re.compile(r"[,()%*]")


def search_conditions(columns: Iterable[str], text: str) -> List[str]:
    """Case-insensitive substring match on each column, as or_() conditions; [] for a blank search"""
    term = _RESERVED.sub(" ", text or "").strip().lower()
    if not term:
        return []
    return [f"{column}.ilike.%{term}%" for column in columns]
