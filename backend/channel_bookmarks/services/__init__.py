"""Services Layer — imperative shell around the pure bookmark engines.

Invariants:
    - Services own IO: database access, channel locks and event publication
    - Pure decisions are delegated to core/ (ordering, versioning, sync)
"""
