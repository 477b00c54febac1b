"""
Media Plan Kernel - shared infrastructure for the import engine.

Provides:
- Structured JSON logging with request-scoped context
- Typed exception hierarchy with machine-readable codes
- SQLAlchemy declarative base, engine and session management
- Master-data taxonomy and fact ORM models
- Injectable clock
"""

__version__ = "0.1.0"
