"""Epoch-millisecond clock used for every persisted timestamp."""

import time


def now_ms() -> int:
    return int(time.time() * 1000)
