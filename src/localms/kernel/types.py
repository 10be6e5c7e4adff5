"""Small shared helpers and callback contracts."""

from __future__ import annotations

import time
from typing import Any, Callable, Dict

EventSink = Callable[[str, Dict[str, Any]], None]


def now_ms() -> int:
    return int(time.time() * 1000)
