"""Map Telegram chat objects to the stored chat record."""
from typing import Any, Callable, Dict

from telegram.constants import ChatType

from .models import Chat, ChatKind


def _private(chat: Any) -> Chat:
    return Chat(
        id=chat.id,
        kind=ChatKind.PRIVATE,
        username=getattr(chat, "username", None),
        first_name=getattr(chat, "first_name", None),
        last_name=getattr(chat, "last_name", None),
    )


def _group(chat: Any) -> Chat:
    return Chat(
        id=chat.id,
        kind=ChatKind.GROUP,
        title=getattr(chat, "title", None),
        invite_link=getattr(chat, "invite_link", None),
    )


def _supergroup(chat: Any) -> Chat:
    return Chat(
        id=chat.id,
        kind=ChatKind.SUPERGROUP,
        title=getattr(chat, "title", None),
        username=getattr(chat, "username", None),
        invite_link=getattr(chat, "invite_link", None),
    )


def _unknown(chat: Any) -> Chat:
    return Chat(
        id=chat.id,
        kind=ChatKind.UNKNOWN,
        username=getattr(chat, "username", None),
        first_name=getattr(chat, "first_name", None),
        last_name=getattr(chat, "last_name", None),
        title=getattr(chat, "title", None),
        invite_link=getattr(chat, "invite_link", None),
    )


_NORMALIZERS: Dict[str, Callable[[Any], Chat]] = {
    ChatType.PRIVATE: _private,
    ChatType.GROUP: _group,
    ChatType.SUPERGROUP: _supergroup,
}


def normalize_chat(chat: Any) -> Chat:
    """Build a Chat record from a telegram.Chat.

    Channels, sender chats and any type added to the Bot API later are stored
    as ``unknown`` with whatever optional fields the object carries.
    """
    normalizer = _NORMALIZERS.get(getattr(chat, "type", None), _unknown)
    return normalizer(chat)
