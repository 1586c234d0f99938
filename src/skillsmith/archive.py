"""Archive directory naming.

An archived skill lives at ``<archive_root>/<name>_<timestamp>Z`` where the
timestamp is the UTC ISO instant with ``:`` and ``.`` replaced by ``-``::

    demo_2026-01-15T05-05-01-350Z   (current form, with milliseconds)
    demo_2026-01-15T05-05-01Z       (older form, still accepted)
"""

from __future__ import annotations

import re
from datetime import UTC, datetime

ARCHIVED_NAME_RE = re.compile(r"^(.+?)_(\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}(?:-\d{3})?)Z$")
_TIMESTAMP_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})T(\d{2})-(\d{2})-(\d{2})(?:-(\d{3}))?$")
_SUFFIX_RE = re.compile(r"_\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}(?:-\d{3})?Z$")


def encode_archive_timestamp(dt: datetime) -> str:
    """Encode *dt* as ``YYYY-MM-DDTHH-MM-SS-mmmZ`` in UTC."""
    dt = dt.astimezone(UTC)
    return f"{dt.strftime('%Y-%m-%dT%H-%M-%S')}-{dt.microsecond // 1000:03d}Z"


def decode_archive_timestamp(encoded: str) -> datetime | None:
    """Decode an encoded timestamp, with or without the trailing ``Z``.

    Returns None if *encoded* is not in either supported form or does not
    name a real instant.
    """
    match = _TIMESTAMP_RE.match(encoded.removesuffix("Z"))
    if not match:
        return None
    year, month, day, hour, minute, second, millis = match.groups()
    try:
        return datetime(
            int(year),
            int(month),
            int(day),
            int(hour),
            int(minute),
            int(second),
            int(millis or 0) * 1000,
            tzinfo=UTC,
        )
    except ValueError:
        return None


def make_archived_name(name: str, dt: datetime | None = None) -> str:
    return f"{name}_{encode_archive_timestamp(dt or datetime.now(UTC))}"


def parse_archived_name(dirname: str) -> tuple[str, datetime] | None:
    """Split an archive directory name into ``(original_name, archived_at)``."""
    match = ARCHIVED_NAME_RE.match(dirname)
    if not match:
        return None
    archived_at = decode_archive_timestamp(match.group(2))
    if archived_at is None:
        return None
    return match.group(1), archived_at


def strip_archive_suffix(dirname: str) -> str:
    """Drop the ``_<timestamp>Z`` suffix; names without one come back unchanged."""
    return _SUFFIX_RE.sub("", dirname)
