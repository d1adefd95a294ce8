import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from telegram import Message, Update
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from ..chat import normalize_chat
from ..errors import FeedwatchError, StorageError
from ..models import Chat
from ..subscriptions import MAX_SUBSCRIPTIONS_PER_CHAT, SubscriptionManager
from ..timezone import TimezoneConfigurator

logger = logging.getLogger(__name__)

SUBSCRIBE = "/subscribe"
UNSUBSCRIBE = "/unsubscribe"
LIST_SUBSCRIPTIONS = "/list_subscriptions"
HELP = "/help"
START = "/start"
SET_TIMEZONE = "/set_timezone"
GET_TIMEZONE = "/get_timezone"

# Match order
COMMANDS = (SUBSCRIBE, UNSUBSCRIBE, LIST_SUBSCRIPTIONS, HELP, START, SET_TIMEZONE, GET_TIMEZONE)

UNKNOWN_COMMAND_REPLY = "Unknown command. Use /help to show available commands"
NO_SUBSCRIPTIONS_REPLY = "You don't have any subscriptions"
NO_TIMEZONE_REPLY = "You don't have timezone set"

COMMANDS_HELP = (
    f"{START} - show the bot's description\n"
    f"{SUBSCRIBE} url - subscribe to feed\n"
    f"{UNSUBSCRIBE} url - unsubscribe from feed\n"
    f"{LIST_SUBSCRIPTIONS} - list your subscriptions\n"
    f"{HELP} - show available commands\n"
    f"{SET_TIMEZONE} - set your timezone. All received dates will be converted to this timezone. "
    "It should be offset in minutes from UTC. For example, if you live in UTC +10 timezone, offset is equal to 600\n"
    f"{GET_TIMEZONE} - get your timezone\n"
)

START_TEXT = (
    "Feedwatch is a feed reader as a Telegram bot.\n"
    "It supports RSS, Atom and JSON feeds.\n\n"
    "Available commands:\n"
    f"{COMMANDS_HELP}\n"
    "Synchronization information.\n"
    "When you subscribe to a new feed, you'll receive the latest items from it. "
    "After that, you'll start receiving only new feed items.\n"
    f"Currently, the number of subscriptions is limited to {MAX_SUBSCRIPTIONS_PER_CHAT}."
)


@dataclass
class Command:
    """A recognised command and its argument"""
    name: str
    argument: str = ""
    mention: Optional[str] = None

    def addressed_to(self, bot_username: Optional[str]) -> bool:
        """False when the command names a different bot"""
        if not self.mention or not bot_username:
            return True
        return self.mention.lower() == bot_username.lower()


def parse_command(text: str) -> Optional[Command]:
    """Match text against the command tokens.

    The token must be followed by the end of text, whitespace or a bot mention
    (``/subscribe@my_bot url``). Returns None for anything else.
    """
    text = (text or "").strip()
    for token in COMMANDS:
        if not text.startswith(token):
            continue
        rest = text[len(token):]
        if rest and not (rest[0].isspace() or rest[0] == "@"):
            continue
        mention = None
        if rest.startswith("@"):
            parts = rest.split(None, 1)
            mention = parts[0][1:] or None
            rest = parts[1] if len(parts) > 1 else ""
        return Command(name=token, argument=rest.strip(), mention=mention)
    return None


class CommandRouter:
    """Dispatch inbound text messages to the subscription core"""

    def __init__(
        self,
        subscriptions: SubscriptionManager,
        timezones: TimezoneConfigurator,
        on_storage_error: Optional[Callable[[str], Awaitable[Any]]] = None,
    ):
        self.subscriptions = subscriptions
        self.timezones = timezones
        self.on_storage_error = on_storage_error
        self._alert_tasks = set()
        self._handlers = {
            SUBSCRIBE: self._subscribe,
            UNSUBSCRIBE: self._unsubscribe,
            LIST_SUBSCRIPTIONS: self._list_subscriptions,
            HELP: self._help,
            START: self._start,
            SET_TIMEZONE: self._set_timezone,
            GET_TIMEZONE: self._get_timezone,
        }

    async def handle_update(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle one inbound text message.

        Parsing happens here; the command itself runs in its own task so the
        update loop moves on to the next message right away.
        """
        message = update.effective_message
        if message is None or not message.text:
            return

        chat = normalize_chat(update.effective_chat)
        command = parse_command(message.text)
        if command and not command.addressed_to(context.bot.username):
            logger.debug(f"Ignoring {command.name}@{command.mention} in chat {chat.id}")
            return

        logger.info(f"{chat.id} wrote: {message.text}")
        task_name = command.name.lstrip("/") if command else "unknown"
        context.application.create_task(
            self.respond(message, chat, command),
            update=update,
            name=f"{task_name}:{chat.id}:{message.message_id}",
        )

    async def respond(self, message: Message, chat: Chat, command: Optional[Command]) -> None:
        """Run a command and send exactly one reply"""
        reply = await self.execute(chat, command)
        try:
            await message.reply_text(reply)
        except TelegramError as e:
            logger.error(f"Failed to reply to chat {chat.id}: {e}")

    async def execute(self, chat: Chat, command: Optional[Command]) -> str:
        """Run a command and return the reply text"""
        if command is None:
            return UNKNOWN_COMMAND_REPLY

        handler = self._handlers[command.name]
        # sqlite and feed downloads block, keep them off the event loop
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, handler, chat, command.argument)
        except StorageError as e:
            logger.error(f"Storage error on {command.name} from chat {chat.id}: {e.detail}", exc_info=True)
            self._alert(f"{command.name} from chat {chat.id} failed: {e.detail}")
            return e.message
        except FeedwatchError as e:
            logger.info(f"{command.name} from chat {chat.id} rejected: {type(e).__name__}")
            return e.message
        except Exception as e:
            logger.error(f"Unexpected error on {command.name} from chat {chat.id}: {e}", exc_info=True)
            self._alert(f"{command.name} from chat {chat.id} crashed: {type(e).__name__}: {e}")
            return StorageError.message

    def _alert(self, text: str) -> None:
        """Send an admin alert in the background; the user's reply does not wait for it"""
        if not self.on_storage_error:
            return
        task = asyncio.create_task(self.on_storage_error(text), name="admin-alert")
        self._alert_tasks.add(task)
        task.add_done_callback(self._alert_tasks.discard)

    # Command handlers, run in a worker thread
    def _subscribe(self, chat: Chat, argument: str) -> str:
        self.subscriptions.create_subscription(chat, argument)
        return f"Successfully subscribed to {argument}"

    def _unsubscribe(self, chat: Chat, argument: str) -> str:
        self.subscriptions.delete_subscription(chat.id, argument)
        return f"Successfully unsubscribed from {argument}"

    def _list_subscriptions(self, chat: Chat, argument: str) -> str:
        links = self.subscriptions.list_subscriptions(chat.id)
        if not links:
            return NO_SUBSCRIPTIONS_REPLY
        return "\n".join(links)

    def _help(self, chat: Chat, argument: str) -> str:
        return COMMANDS_HELP

    def _start(self, chat: Chat, argument: str) -> str:
        return START_TEXT

    def _set_timezone(self, chat: Chat, argument: str) -> str:
        self.timezones.set_timezone(chat.id, argument)
        return "Your timezone was updated"

    def _get_timezone(self, chat: Chat, argument: str) -> str:
        offset = self.timezones.get_timezone(chat.id)
        if offset is None:
            return NO_TIMEZONE_REPLY
        return f"Your timezone offset is {offset} minutes"
