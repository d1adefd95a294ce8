from unittest.mock import AsyncMock

import pytest
from telegram.error import TimedOut

from feedwatch.app import Application
from feedwatch.bot import bot as bot_module
from feedwatch.config import AppConfig


@pytest.fixture
def app(db, validator):
    return Application(
        config=AppConfig(admin_chat_id=99),
        token="123:abc",
        db=db,
        validator=validator,
    )


def test_wiring_shares_the_store(app, db):
    assert app.subscriptions.db is db
    assert app.timezones.db is db
    assert app.router.subscriptions is app.subscriptions
    assert app.bot.router is app.router


def test_setup_registers_text_handler(app):
    application = app.bot.setup()

    handlers = application.handlers[0]
    assert len(handlers) == 1
    assert handlers[0].callback == app.router.handle_update


@pytest.mark.asyncio
async def test_admin_alert_escapes_html(app):
    app.bot.send_message = AsyncMock(return_value=True)

    await app._notify_admin("insert <chats> failed")

    chat_id, text = app.bot.send_message.await_args.args
    assert chat_id == 99
    assert "&lt;chats&gt;" in text


@pytest.mark.asyncio
async def test_admin_alert_skipped_without_admin(db, validator):
    app = Application(config=AppConfig(), token="123:abc", db=db, validator=validator)
    app.bot.send_message = AsyncMock()

    await app._notify_admin("boom")

    app.bot.send_message.assert_not_called()


@pytest.mark.asyncio
async def test_send_message_retries_on_timeout(app, monkeypatch):
    monkeypatch.setattr(bot_module, "RETRY_DELAY", 0)
    app.bot.setup()
    send = AsyncMock(side_effect=[TimedOut(), None])
    monkeypatch.setattr(type(app.bot.application.bot), "send_message", send)

    assert await app.bot.send_message(42, "hello") is True
    assert send.await_count == 2
