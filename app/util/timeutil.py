from __future__ import annotations

import time


def now_ts() -> int:
    """Wall clock in whole seconds."""
    return int(time.time())


def now_ms() -> int:
    """Wall clock in milliseconds (tag cooldown resolution)."""
    return int(time.time() * 1000)
