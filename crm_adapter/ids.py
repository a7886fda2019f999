"""Sequential CRM identifiers, e.g. PAT2026010001 / APT2026010042.

Codes are <3-letter kind><YYYY><MM><4+ digit sequence>; the sequence restarts
every calendar month. Issuance is read-then-increment against the store and
is not serialized: two concurrent callers in the same month can mint the same
code, in which case the CRM's unique constraint rejects the second insert.
"""
from __future__ import annotations
import logging
import time
from datetime import datetime

from .store import RecordStore

logger = logging.getLogger(__name__)

# kind -> (table, code column)
SEQUENCES = {
    "PAT": ("patients", "patient_id"),
    "APT": ("appointments", "appointment_id"),
}
SEQUENCE_WIDTH = 4


def make_prefix(kind: str, now: datetime) -> str:
    return f"{kind}{now.year:04d}{now.month:02d}"


def _parse_sequence(code: str, prefix: str) -> int:
    suffix = code[len(prefix):]
    if not code.startswith(prefix) or not suffix.isdigit():
        raise ValueError(f"malformed sequential code {code!r} for prefix {prefix}")
    return int(suffix)


async def next_sequential_id(store: RecordStore, kind: str, now: datetime | None = None) -> str:
    """Return the next free code for ``kind`` in the month of ``now``.

    Never raises on store or parse errors; falls back to ``<kind><epoch ms>``
    so the sync can proceed with a unique, if unreadable, code.
    """
    if kind not in SEQUENCES:
        raise ValueError(f"unknown sequence kind {kind!r}")
    table, column = SEQUENCES[kind]
    prefix = make_prefix(kind, now or datetime.now())

    try:
        last = await store.find_last_with_prefix(table, column, prefix)
        if last and last.get(column):
            sequence = _parse_sequence(last[column], prefix) + 1
        else:
            sequence = 1
    except Exception as exc:
        fallback = f"{kind}{int(time.time() * 1000)}"
        logger.warning("Using timestamp fallback %s for %s id: %s", fallback, kind, exc)
        return fallback

    return f"{prefix}{sequence:0{SEQUENCE_WIDTH}d}"
