"""Telegram Schemas: the subset of Bot API objects the dispatcher reads.

Invariants:
    - Update.kind names the single payload field present ("message", "callback_query", ...)
    - Unknown update kinds validate (extra="allow") and surface as their kind name

Design Decisions:
    - `from` is a Python keyword: exposed as from_user via alias
"""

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    is_bot: bool = False
    first_name: str = ""
    username: str | None = None


class Chat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    type: str = "private"


class Message(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message_id: int
    chat: Chat
    from_user: User | None = Field(None, alias="from")
    text: str | None = None
    date: int = 0


class CallbackQuery(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    from_user: User = Field(alias="from")
    message: Message | None = None
    data: str | None = None


class Update(BaseModel):
    """One getUpdates entry. Exactly one payload field is set per update."""
    model_config = ConfigDict(extra="allow")

    update_id: int
    message: Message | None = None
    callback_query: CallbackQuery | None = None

    @property
    def kind(self) -> str:
        if self.message is not None:
            return "message"
        if self.callback_query is not None:
            return "callback_query"
        extra = self.model_extra or {}
        return next(iter(extra), "unknown")
