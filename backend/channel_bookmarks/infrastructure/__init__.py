"""Infrastructure Layer — database engine, clock and cross-cutting concerns.

Invariants:
    - Infrastructure never imports from services/
    - Database failures are mapped to DatabaseError (core/errors.py)
"""
