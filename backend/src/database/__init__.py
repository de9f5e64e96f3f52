"""
Database package initialization.

- base: declarative base and mixins
- connection: async engine, sessions and health checks
- models: ORM models
"""

__all__ = []
