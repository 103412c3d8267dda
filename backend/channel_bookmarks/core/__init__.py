"""Core Layer — pure domain logic for ordering, versioning and delta sync.

Invariants:
    - No IO: core never imports SQLAlchemy, FastAPI or the services layer
    - Every function takes the current time as an argument (no implicit clock reads)

Design Decisions:
    - Functional core, imperative shell: services/ orchestrates IO around these functions
"""
