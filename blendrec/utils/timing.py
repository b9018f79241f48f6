"""
Blendrec Timing Utilities
Phase timing for the recommendation pipeline
"""

import time
import logging

logger = logging.getLogger(__name__)


class Timer:
    """Context manager timer"""

    def __init__(self, name: str = ""):
        self.name = name
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        self.elapsed = time.perf_counter() - self._start
        if self.name:
            logger.debug(f"{self.name} took {self.elapsed:.4f}s")

    @property
    def elapsed_ms(self) -> float:
        return self.elapsed * 1000.0
