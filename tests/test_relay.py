"""End-to-end tests for RelayCore with fake network clients."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from slack_sdk.errors import SlackApiError

from slumble.config.settings import RelayConfig
from slumble.core_logic.loop_guard import RelayIdentity
from slumble.listeners.mumble_listener import MumbleCallbackNames
from slumble.workers.relay import RelayCore, RelayState

CHANNEL = "C123"
CALLBACKS = MumbleCallbackNames(connected="connected", text_received="text_received")


class FakeApp:
    def __init__(self):
        self.handlers = []

    def event(self, pattern):
        def decorator(func):
            self.handlers.append(func)
            return func
        return decorator


class FakeSocketHandler:
    def __init__(self):
        self.app = FakeApp()
        self.client = SimpleNamespace(message_listeners=[])
        self.closed = False

    async def start_async(self):
        await asyncio.Event().wait()

    async def close_async(self):
        self.closed = True


def make_core(slack_client, handler, channel=CHANNEL):
    mumble = MagicMock()
    mumble.users = {7: {"name": "alice"}}
    identity = RelayIdentity(mumble_name="SlackRelay", slack_name="mumblerelay")
    core = RelayCore(mumble, CALLBACKS, slack_client, RelayConfig("xoxb-1", channel), identity, socket_handler=handler)
    return core, mumble


def registered_callbacks(mumble):
    return {c.args[0]: c.args[1] for c in mumble.callbacks.set_callback.call_args_list}


async def stop(task):
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


@pytest.fixture
def slack_client():
    client = AsyncMock()
    client.users_info.return_value = {"ok": True, "user": {"name": "bob"}}
    return client


class TestRelayCore:
    @pytest.mark.asyncio
    async def test_waits_for_mumble_then_relays_both_ways(self, slack_client):
        handler = FakeSocketHandler()
        core, mumble = make_core(slack_client, handler)
        assert core.state is RelayState.IDLE

        task = asyncio.create_task(core.run())
        await asyncio.sleep(0.01)
        assert core.state is RelayState.CONNECTING
        mumble.start.assert_called_once()

        callbacks = registered_callbacks(mumble)
        assert set(callbacks) == {"connected", "text_received"}
        callbacks["connected"]()
        await asyncio.sleep(0.01)
        assert core.state is RelayState.RELAYING

        await asyncio.to_thread(callbacks["text_received"], SimpleNamespace(actor=7, message="<i>hi</i>"))
        await asyncio.wait_for(core.conduit.join(), timeout=1)
        slack_client.chat_postMessage.assert_awaited_once_with(channel=CHANNEL, text="alice: hi", username="mumblerelay")

        slack_handler, = handler.app.handlers
        await slack_handler(event={"type": "message", "user": "U1", "channel": CHANNEL, "text": "yo"})
        await asyncio.wait_for(core.slack_events.join(), timeout=1)
        mumble.my_channel.return_value.send_text_message.assert_called_once_with("bob: yo")

        await stop(task)
        assert core.state is RelayState.SHUTTING_DOWN
        mumble.stop.assert_called_once()
        assert handler.closed is True

    @pytest.mark.asyncio
    async def test_rejected_slack_token_only_halts_slack_to_mumble(self, slack_client):
        slack_client.auth_test.side_effect = SlackApiError("failed", {"ok": False, "error": "invalid_auth"})
        handler = FakeSocketHandler()
        core, mumble = make_core(slack_client, handler)

        task = asyncio.create_task(core.run())
        await asyncio.sleep(0.01)
        callbacks = registered_callbacks(mumble)
        callbacks["connected"]()
        await asyncio.sleep(0.01)

        slack_handler, = handler.app.handlers
        await slack_handler(event={"type": "message", "user": "U1", "channel": CHANNEL, "text": "lost"})
        await asyncio.sleep(0.01)
        mumble.my_channel.return_value.send_text_message.assert_not_called()
        assert core.slack_events.qsize() == 0

        await asyncio.to_thread(callbacks["text_received"], SimpleNamespace(actor=7, message="still works"))
        await asyncio.wait_for(core.conduit.join(), timeout=1)
        slack_client.chat_postMessage.assert_awaited_once()
        assert not task.done()

        await stop(task)

    @pytest.mark.asyncio
    async def test_rate_limited_slack_startup_keeps_mumble_to_slack(self, slack_client, capsys):
        slack_client.auth_test.side_effect = SlackApiError("failed", {"ok": False, "error": "ratelimited"})
        handler = FakeSocketHandler()
        core, mumble = make_core(slack_client, handler)

        task = asyncio.create_task(core.run())
        await asyncio.sleep(0.01)
        callbacks = registered_callbacks(mumble)
        callbacks["connected"]()
        await asyncio.sleep(0.01)

        await asyncio.to_thread(callbacks["text_received"], SimpleNamespace(actor=7, message="over the limit"))
        await asyncio.wait_for(core.conduit.join(), timeout=1)
        slack_client.chat_postMessage.assert_awaited_once_with(
            channel=CHANNEL, text="alice: over the limit", username="mumblerelay"
        )
        assert not task.done()
        assert "Slack connection failed: ratelimited" in capsys.readouterr().out

        await stop(task)

    @pytest.mark.asyncio
    async def test_network_error_on_slack_startup_keeps_mumble_to_slack(self, slack_client):
        slack_client.auth_test.side_effect = aiohttp.ClientConnectionError("connection reset")
        handler = FakeSocketHandler()
        core, mumble = make_core(slack_client, handler)

        task = asyncio.create_task(core.run())
        await asyncio.sleep(0.01)
        callbacks = registered_callbacks(mumble)
        callbacks["connected"]()
        await asyncio.sleep(0.01)

        await asyncio.to_thread(callbacks["text_received"], SimpleNamespace(actor=7, message="hello"))
        await asyncio.wait_for(core.conduit.join(), timeout=1)
        slack_client.chat_postMessage.assert_awaited_once()
        assert not task.done()

        await stop(task)

    @pytest.mark.asyncio
    async def test_channel_name_is_resolved_once_mumble_is_up(self, slack_client):
        slack_client.conversations_list.return_value = {
            "ok": True,
            "channels": [{"id": "C777", "name": "general"}],
            "response_metadata": {"next_cursor": ""},
        }
        handler = FakeSocketHandler()
        core, mumble = make_core(slack_client, handler, channel="#general")

        task = asyncio.create_task(core.run())
        await asyncio.sleep(0.01)
        callbacks = registered_callbacks(mumble)
        callbacks["connected"]()
        await asyncio.sleep(0.01)
        assert core.channel_id == "C777"

        await asyncio.to_thread(callbacks["text_received"], SimpleNamespace(actor=7, message="hi"))
        await asyncio.wait_for(core.conduit.join(), timeout=1)
        slack_client.chat_postMessage.assert_awaited_once_with(channel="C777", text="alice: hi", username="mumblerelay")

        slack_handler, = handler.app.handlers
        await slack_handler(event={"type": "message", "user": "U1", "channel": "C777", "text": "yo"})
        await asyncio.wait_for(core.slack_events.join(), timeout=1)
        mumble.my_channel.return_value.send_text_message.assert_called_once_with("bob: yo")
        slack_client.conversations_list.assert_awaited_once()

        await stop(task)

    @pytest.mark.asyncio
    async def test_without_app_token_only_mumble_to_slack_runs(self, slack_client):
        core, mumble = make_core(slack_client, None)

        task = asyncio.create_task(core.run())
        await asyncio.sleep(0.01)
        callbacks = registered_callbacks(mumble)
        callbacks["connected"]()

        await asyncio.to_thread(callbacks["text_received"], SimpleNamespace(actor=7, message="hello"))
        await asyncio.wait_for(core.conduit.join(), timeout=1)
        slack_client.chat_postMessage.assert_awaited_once()
        slack_client.auth_test.assert_not_called()

        await stop(task)
