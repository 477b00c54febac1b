"""
Pure domain layer.

No dependencies on the ORM, the database or wall-clock time.
"""

from mediaplan_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
]
