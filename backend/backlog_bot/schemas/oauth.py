"""OAuth Schemas: query parameters of the implicit-flow redirect.

Invariants:
    - access_token and state are non-empty
    - expires_in is a positive number of seconds

Design Decisions:
    - Extra parameters (token_type, scope) accepted and ignored
"""

from pydantic import BaseModel, Field


class TokenRedirect(BaseModel):
    """Fields the Hub appends to the redirect fragment, forwarded as a query."""
    access_token: str = Field(min_length=1)
    expires_in: int = Field(gt=0)
    state: str = Field(min_length=1)
    token_type: str | None = None
    scope: str | None = None
