"""Services Layer: session store, access tokens, action executor, dispatcher, poller.

Invariants:
    - Intent execution uses explicit dict mapping (no auto-discovery)
    - Services reach IO only through the protocols in core/repository_protocols.py

Design Decisions:
    - Imperative shell around the pure core: read state, decide, act, persist
"""
