# slumble/workers/relay.py

import asyncio
from enum import Enum
import aiohttp
from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient
from slumble.config.settings import RelayConfig
from slumble.core_logic.conduit import Conduit
from slumble.core_logic.loop_guard import LoopGuard, RelayIdentity
from slumble.core_logic.slack_events import SlackEvent, SlackEventStream, is_auth_failure
from slumble.listeners.mumble_listener import MumbleCallbackNames, MumbleListener
from slumble.listeners.slack_listener import resolve_channel_id, setup_slack_listener, slack_listener_worker
from slumble.senders.mumble_sender import MumbleSender
from slumble.senders.slack_sender import SlackDispatcher, slack_sender_worker


class RelayState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    RELAYING = "relaying"
    SHUTTING_DOWN = "shutting_down"


class RelayCore:
    """
    Owns both network clients and everything that moves messages between them.

    Mumble -> Slack goes through the conduit and a single drain task.
    Slack -> Mumble is handled inline by the Slack listener worker, which
    already sees events one at a time.
    """
    def __init__(
        self,
        mumble,
        mumble_callbacks: MumbleCallbackNames,
        slack_client: AsyncWebClient,
        config: RelayConfig,
        identity: RelayIdentity,
        socket_handler: AsyncSocketModeHandler = None,
        conduit_max_size: int = 0,
    ):
        self.mumble = mumble
        self.mumble_callbacks = mumble_callbacks
        self.slack_client = slack_client
        self.socket_handler = socket_handler
        self.config = config
        self.channel_id = config.slack_channel
        self.loop_guard = LoopGuard(identity)
        self.conduit = Conduit(maxsize=conduit_max_size)
        self.slack_events = SlackEventStream()
        self.state = RelayState.IDLE
        self._mumble_ready = asyncio.Event()

    def _attach_mumble(self, loop: asyncio.AbstractEventLoop):
        MumbleListener(self.mumble, self.conduit, loop, self.loop_guard).attach(self.mumble_callbacks.text_received)

        def on_connected():
            # Fired on pymumble's thread; the event is the hand-over point
            # after which the loop may touch the Mumble handle.
            loop.call_soon_threadsafe(self._mumble_ready.set)

        self.mumble.callbacks.set_callback(self.mumble_callbacks.connected, on_connected)

    async def _run_slack_connection(self):
        """
        Checks the bot token, then keeps the Socket Mode connection alive.
        Any failure here only ends the Slack -> Mumble direction.
        """
        try:
            auth = await self.slack_client.auth_test()
            print(f"[RELAY] Slack token accepted for '{auth.get('user')}' in team '{auth.get('team')}'.")
            await self.socket_handler.start_async()
        except SlackApiError as e:
            error = e.response.get("error")
            if is_auth_failure(error):
                print(f"[RELAY] Slack rejected our credentials: {error}")
            else:
                print(f"[RELAY] Slack connection failed: {error}")
            await self.slack_events.put(SlackEvent.auth_invalid(error))
        except (aiohttp.ClientError, OSError) as e:
            print(f"[RELAY] Slack connection failed: {e}")
            await self.slack_events.put(SlackEvent.auth_invalid(str(e)))

    async def run(self):
        loop = asyncio.get_running_loop()
        print("[RELAY] Connecting to Mumble and Slack...")
        self.state = RelayState.CONNECTING

        self._attach_mumble(loop)
        if self.socket_handler is not None:
            setup_slack_listener(self.socket_handler.app, self.socket_handler.client, self.slack_events)
        else:
            print("[RELAY] No Slack app token configured. Slack -> Mumble relay disabled.")

        try:
            async with asyncio.TaskGroup() as tg:
                self.mumble.start()
                if self.socket_handler is not None:
                    tg.create_task(self._run_slack_connection())

                await self._mumble_ready.wait()
                self.state = RelayState.RELAYING
                print("[RELAY] Mumble connected. Relaying.")

                self.channel_id = await resolve_channel_id(self.slack_client, self.config.slack_channel)
                dispatcher = SlackDispatcher(self.slack_client, self.channel_id, self.loop_guard.identity.slack_name)
                tg.create_task(slack_sender_worker(self.conduit, dispatcher))
                if self.socket_handler is not None:
                    tg.create_task(slack_listener_worker(
                        self.slack_events,
                        self.slack_client,
                        MumbleSender(self.mumble),
                        self.loop_guard,
                        self.channel_id,
                    ))
        finally:
            await self.shutdown()

    async def shutdown(self):
        self.state = RelayState.SHUTTING_DOWN
        print("[RELAY] Shutting down...")
        try:
            self.mumble.stop()
        except Exception as e:
            print(f"[RELAY] Error while stopping Mumble client: {e}")
        if self.socket_handler is not None:
            await self.socket_handler.close_async()
        print("[RELAY] All clients disconnected.")
