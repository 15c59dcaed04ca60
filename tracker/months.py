"""Month keys (YYYY-MM, local time) used to partition statistics."""

from __future__ import annotations

import time
from datetime import datetime


def month_key(ts: float | None = None) -> str:
    if ts is None:
        ts = time.time()
    return datetime.fromtimestamp(ts).strftime("%Y-%m")
