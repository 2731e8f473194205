"""Due-date annotation embedded in issue bodies.

GitHub issues have no due date field, so the date travels inside the body as
a ``Due: YYYY-MM-DD`` line placed ahead of the user's text::

    Due: 2024-03-01

    Buy milk

Any line whose trimmed, lowercased form starts with ``due:`` is metadata and
never shown as body text. When a body carries several due lines the last one
with a valid date wins; invalid due lines are removed without recording a
date.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import NamedTuple

DUE_PREFIX = "due:"
DUE_LABEL = "Due:"
STORAGE_FORMAT = "%Y-%m-%d"

_STRICT_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ParsedBody(NamedTuple):
    clean_body: str
    due_date: dt.date | None


def _parse_storage_date(raw: str) -> dt.date | None:
    if not _STRICT_DATE_RE.match(raw):
        return None
    try:
        return dt.datetime.strptime(raw, STORAGE_FORMAT).date()
    except ValueError:
        return None


def is_due_line(line: str) -> bool:
    return line.strip().lower().startswith(DUE_PREFIX)


def parse(body: str | None) -> ParsedBody:
    """Split ``body`` into the user's text and the due date, if any."""
    if body is None or not body.strip():
        return ParsedBody("", None)
    due_date: dt.date | None = None
    remaining: list[str] = []
    # Split on "\n" only; "\r" and other separators stay part of the text
    for line in body.split("\n"):
        if is_due_line(line):
            raw = line.strip()[len(DUE_PREFIX):].strip()
            parsed = _parse_storage_date(raw)
            if parsed is not None:
                due_date = parsed
            continue
        remaining.append(line)
    return ParsedBody("\n".join(remaining).strip(), due_date)


def format_due_line(due_date: dt.date) -> str:
    return f"{DUE_LABEL} {due_date.strftime(STORAGE_FORMAT)}"


def compose(due_date: dt.date | None, clean_text: str | None) -> str:
    """Build the persisted body from a due date and the user's text.

    Stray due lines already present in ``clean_text`` are dropped so the
    result carries at most one.
    """
    cleaned = parse(clean_text).clean_body
    if due_date is None:
        return cleaned
    due_line = format_due_line(due_date)
    if not cleaned:
        return due_line
    return f"{due_line}\n\n{cleaned}"


def display_string(due_date: dt.date) -> str:
    """Short local label, abbreviated month and day without year (``Mar 1``)."""
    return f"{due_date.strftime('%b')} {due_date.day}"


__all__ = [
    "ParsedBody",
    "parse",
    "compose",
    "display_string",
    "format_due_line",
    "is_due_line",
]
