# slumble/core_logic/relay_message.py

from dataclasses import dataclass
from enum import Enum


class Network(Enum):
    MUMBLE = "mumble"
    SLACK = "slack"


@dataclass
class RelayMessage:
    """
    A message observed on one network, on its way to the other one.
    Built once by a listener, rendered once by a sender, then dropped.
    """
    sender_display_name: str
    body: str  # Raw body in the origin network's markup
    origin: Network

    def render(self) -> str:
        return f"{self.sender_display_name}: {self.body}"
