"""
Compliance Kernel

Shared infrastructure for the order compliance engine:
- Structured JSON logging with request-scoped context
- Typed, coded exception hierarchy
- SQLAlchemy declarative base and session management
- Injectable clock for deterministic evaluation
"""

__version__ = "0.1.0"
