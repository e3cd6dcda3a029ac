"""Core Layer: pure dispatch logic, no network IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, models/ or db/
    - The engine and normalizer are deterministic given their inputs (the opaque
      codec's injected cache is the only mutable collaborator)

Design Decisions:
    - Functional core separated from imperative shell
"""
