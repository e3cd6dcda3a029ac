"""Inbound Events: Telegram Update -> core InboundEvent.

Invariants:
    - Every update maps to exactly one event; nothing here raises
    - A message without a sender, or a callback without a chat, is an OtherEvent
"""

from backlog_bot.core.commands import (
    CallbackEvent, InboundEvent, MessageEvent, OtherEvent,
)
from backlog_bot.core.domain_types import MessageRef
from backlog_bot.schemas.telegram import Update


def to_event(update: Update) -> InboundEvent:
    message = update.message
    if message is not None:
        if message.from_user is None:
            return OtherEvent("anonymous_message")
        return MessageEvent(
            user_id=message.from_user.id,
            chat_id=message.chat.id,
            message_id=message.message_id,
            text=message.text,
            first_name=message.from_user.first_name,
        )

    query = update.callback_query
    if query is not None:
        if query.message is None:
            # Inline-mode messages carry no chat; the bot never posts those
            return OtherEvent("inline_callback_query", query.from_user.id)
        return CallbackEvent(
            callback_id=query.id,
            user_id=query.from_user.id,
            chat_id=query.message.chat.id,
            message_ref=MessageRef(query.message.chat.id, query.message.message_id),
            data=query.data,
        )

    return OtherEvent(update.kind)
