"""Infrastructure Layer: HTTP collaborators, persistence backends and logging.

Invariants:
    - Infrastructure imports core/ only for value types, errors and protocols
    - All external calls wrapped with retry/timeout/error mapping

Design Decisions:
    - Resilient wrappers over raw httpx clients: retry policy lives in one place
"""
