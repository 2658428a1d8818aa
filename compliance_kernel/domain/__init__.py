"""
Pure domain layer.

Contains the injectable clock.  NO dependencies on ORM, database or I/O.
"""

from compliance_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = ["Clock", "DeterministicClock", "SystemClock"]
