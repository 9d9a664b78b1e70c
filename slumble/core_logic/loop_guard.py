# slumble/core_logic/loop_guard.py

from dataclasses import dataclass
from typing import Optional
from slumble.core_logic.relay_message import Network


@dataclass(frozen=True)
class RelayIdentity:
    """The names the relay itself posts under on each network."""
    mumble_name: str
    slack_name: str

    def name_on(self, network: Network) -> str:
        return self.mumble_name if network is Network.MUMBLE else self.slack_name


class LoopGuard:
    """
    Drops inbound events that are really the relay's own output coming back.
    Whatever we post on a network arrives there under our own name, so an
    event on that network carrying that name is an echo.
    """
    def __init__(self, identity: RelayIdentity):
        if identity.mumble_name == identity.slack_name:
            raise ValueError("Relay names on Mumble and Slack must be different.")
        self.identity = identity

    def is_echo(self, network: Network, sender_display_name: Optional[str]) -> bool:
        if not sender_display_name:
            return False
        return sender_display_name == self.identity.name_on(network)
