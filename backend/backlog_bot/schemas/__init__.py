"""Pydantic Schemas: validation for inbound Telegram updates and the OAuth redirect.

Invariants:
    - Schemas validate at system boundary (Bot API payloads, browser query strings)
    - Unknown fields are ignored, never fatal

Design Decisions:
    - Separate from core/commands.py: schemas mirror the wire, commands are the domain
"""
