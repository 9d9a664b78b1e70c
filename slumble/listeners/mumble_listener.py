# slumble/listeners/mumble_listener.py

import asyncio
from dataclasses import dataclass
from slumble.core_logic.conduit import Conduit
from slumble.core_logic.loop_guard import LoopGuard
from slumble.core_logic.relay_message import RelayMessage, Network


@dataclass(frozen=True)
class MumbleCallbackNames:
    """pymumble's callback keys, handed in by whoever imported pymumble."""
    connected: str
    text_received: str


class MumbleListener:
    """
    Turns Mumble text messages into RelayMessages on the conduit.
    Runs on pymumble's callback thread, not on the event loop.
    """
    def __init__(self, mumble, conduit: Conduit, loop: asyncio.AbstractEventLoop, loop_guard: LoopGuard):
        self.mumble = mumble
        self.conduit = conduit
        self.loop = loop
        self.loop_guard = loop_guard

    def attach(self, callback_name: str):
        print("[MUMBLE_LISTENER] Setting up text message handler...")
        self.mumble.callbacks.set_callback(callback_name, self.on_text_message)
        print("[MUMBLE_LISTENER] Text message handler registered.")

    def _sender_name(self, text_message):
        actor = getattr(text_message, "actor", 0)
        if not actor:
            return None
        sender = self.mumble.users.get(actor)
        if sender is None:
            return None
        return sender.get("name")

    def on_text_message(self, text_message):
        name = self._sender_name(text_message)
        # Server notices have no sender
        if not name:
            return
        if self.loop_guard.is_echo(Network.MUMBLE, name):
            return

        message = RelayMessage(
            sender_display_name=name,
            body=text_message.message,
            origin=Network.MUMBLE,
        )
        print(f"[MUMBLE_LISTENER] Received Mumble message from {name}: '{message.body[:50]}...'")

        # Blocks this thread while the conduit is full.
        self.conduit.put_threadsafe(message, self.loop)
