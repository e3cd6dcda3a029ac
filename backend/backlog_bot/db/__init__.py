"""Database Infrastructure: declarative Base for the session_records table.

Invariants:
    - Single async engine per process (initialized via init_db)
    - All sessions are async (AsyncSession)
"""
