from __future__ import annotations

import re
from datetime import date

from dateutil.parser import isoparse


_ISO_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_iso_date(value: str) -> date:
    """
    Parse a calendar date written exactly as `YYYY-MM-DD` (e.g. "2023-09-01").

    `isoparse` alone also accepts "20230901", "2023-09" or a trailing time; the SUMS table never
    renders those, so anything other than the plain day form is rejected.
    """
    if value is None:
        raise ValueError("parse_iso_date: value is None")
    s = value.strip()
    if not s:
        raise ValueError("parse_iso_date: empty string")
    if not _ISO_DAY_RE.match(s):
        raise ValueError(f"parse_iso_date: expected YYYY-MM-DD, got {value!r}")
    return isoparse(s).date()
