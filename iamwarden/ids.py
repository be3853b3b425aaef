"""
ID Generation
Thread-safe, process-local identifiers for findings, plans and commands.
"""

import threading
import time
from typing import Callable, Optional


class IDGenerator:
    """
    Monotonic counter combined with a unix timestamp.

    IDs look like ``IAM-1700000000-7``. They are unique for the lifetime of the
    generator, not across processes. One generator is normally created per
    process and handed to the detector, synthesizer and analyzer.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.time
        self._counter = 0
        self._lock = threading.Lock()

    def next_id(self, prefix: str) -> str:
        with self._lock:
            self._counter += 1
            value = self._counter
        return f'{prefix}-{int(self._clock())}-{value}'

    def finding_id(self) -> str:
        return self.next_id('IAM')

    def plan_id(self) -> str:
        return self.next_id('FIX')

    def command_id(self) -> str:
        return self.next_id('CMD')

    def reset(self):
        """Reset the counter (tests only)."""
        with self._lock:
            self._counter = 0

    @property
    def issued(self) -> int:
        """Number of IDs issued so far."""
        return self._counter
