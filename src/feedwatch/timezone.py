import logging
import re
from typing import Optional

from .database import Database
from .errors import ChatNotFound, NotANumber, NotDivisibleBy30, OutOfRange

logger = logging.getLogger(__name__)

# UTC -12 .. UTC +14
MIN_OFFSET_MINUTES = -720
MAX_OFFSET_MINUTES = 840
OFFSET_STEP_MINUTES = 30

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


def parse_offset(raw_value: str) -> int:
    """Parse and validate a UTC offset in minutes"""
    raw_value = (raw_value or "").strip()
    if not _INTEGER_RE.fullmatch(raw_value):
        raise NotANumber(raw_value)

    offset = int(raw_value)

    # Range first: -721 reports OutOfRange, not NotDivisibleBy30
    if offset < MIN_OFFSET_MINUTES or offset > MAX_OFFSET_MINUTES:
        raise OutOfRange(raw_value)

    if offset % OFFSET_STEP_MINUTES != 0:
        raise NotDivisibleBy30(raw_value)

    return offset


class TimezoneConfigurator:
    """Per-chat UTC offset settings"""

    def __init__(self, db: Database):
        self.db = db

    def set_timezone(self, chat_id: int, raw_value: str) -> int:
        """Validate and store the offset. Only chats known to the bot can set one."""
        offset = parse_offset(raw_value)

        with self.db.transaction() as conn:
            if self.db.find_chat(conn, chat_id) is None:
                raise ChatNotFound(str(chat_id))
            self.db.set_utc_offset(conn, chat_id, offset)

        logger.info(f"Chat {chat_id} set timezone offset to {offset} minutes")
        return offset

    def get_timezone(self, chat_id: int) -> Optional[int]:
        """Get the stored offset, None when unset or the chat is unknown"""
        with self.db.read() as conn:
            chat = self.db.find_chat(conn, chat_id)
        if chat is None:
            return None
        return chat.utc_offset_minutes
