"""Wall-clock source for code expiry.

Expiry is compared against absolute epoch seconds, so every component that
stamps or checks a deadline takes a ``Clock`` at construction.  Production
code uses ``system_clock``; tests pass a controllable fake.
"""

from __future__ import annotations

import time
from collections.abc import Callable

Clock = Callable[[], float]


def system_clock() -> float:
    return time.time()
