"""Time stamps and human-readable ages of files."""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

_MINUTE = timedelta(minutes=1)
_HOUR = timedelta(hours=1)
_DAY = timedelta(days=1)


def generate_backup_name(moment: datetime) -> str:
    """File name of a CSV export of uninstalled packages made at `moment`."""
    return moment.strftime("uninstalled_packages_%Y%m%d.csv")


def last_modified_date(path: str | os.PathLike[str]) -> datetime:
    """Modification time of `path` in UTC, or the current time if unknown."""
    try:
        mtime = os.stat(path).st_mtime
    except OSError:
        return datetime.now(timezone.utc)
    return datetime.fromtimestamp(mtime, tz=timezone.utc)


def _whole_units(span: timedelta, unit: timedelta) -> int:
    """Number of whole `unit`s in `span`, truncated toward zero."""
    count = abs(span) // unit
    return -count if span < timedelta(0) else count


def format_diff_time_from_now(date: datetime, now: datetime | None = None) -> str:
    """How long ago `date` was, in minutes, hours or days."""
    if now is None:
        now = datetime.now(timezone.utc)
    elapsed = now - date
    days = _whole_units(elapsed, _DAY)
    if days != 0:
        return f"{days} day(s) ago"
    hours = _whole_units(elapsed, _HOUR)
    if hours != 0:
        return f"{hours} hour(s) ago"
    return f"{_whole_units(elapsed, _MINUTE)} min(s) ago"