# slumble/core_logic/slack_events.py

from asyncio import Queue
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class SlackEventKind(Enum):
    TEXT_POSTED = "text_posted"
    FILE_COMMENT_ADDED = "file_comment_added"
    AUTH_INVALID = "auth_invalid"
    CONNECTED = "connected"
    PRESENCE = "presence"
    LATENCY = "latency"
    ERROR = "error"
    DISCONNECTED = "disconnected"
    FILE_COMMENT_EDITED = "file_comment_edited"
    FILE_PUBLIC = "file_public"
    FILE_SHARED = "file_shared"
    CHANNEL_JOINED = "channel_joined"
    REACTION_ADDED = "reaction_added"
    MESSAGE_TOO_LONG = "message_too_long"
    UNRECOGNIZED = "unrecognized"


class EventAction(Enum):
    RELAY = "relay"
    LOG_ONLY = "log_only"
    STOP = "stop"


# What the Slack listener does with each kind of event.
EVENT_ACTIONS = {
    SlackEventKind.TEXT_POSTED: EventAction.RELAY,
    SlackEventKind.AUTH_INVALID: EventAction.STOP,
    SlackEventKind.FILE_COMMENT_ADDED: EventAction.LOG_ONLY,
    SlackEventKind.CONNECTED: EventAction.LOG_ONLY,
    SlackEventKind.PRESENCE: EventAction.LOG_ONLY,
    SlackEventKind.LATENCY: EventAction.LOG_ONLY,
    SlackEventKind.ERROR: EventAction.LOG_ONLY,
    SlackEventKind.DISCONNECTED: EventAction.LOG_ONLY,
    SlackEventKind.FILE_COMMENT_EDITED: EventAction.LOG_ONLY,
    SlackEventKind.FILE_PUBLIC: EventAction.LOG_ONLY,
    SlackEventKind.FILE_SHARED: EventAction.LOG_ONLY,
    SlackEventKind.CHANNEL_JOINED: EventAction.LOG_ONLY,
    SlackEventKind.REACTION_ADDED: EventAction.LOG_ONLY,
    SlackEventKind.MESSAGE_TOO_LONG: EventAction.LOG_ONLY,
    SlackEventKind.UNRECOGNIZED: EventAction.LOG_ONLY,
}

# Raw "type" values from the Events API and Socket Mode frames.
RAW_EVENT_KINDS = {
    "message": SlackEventKind.TEXT_POSTED,
    "file_comment_added": SlackEventKind.FILE_COMMENT_ADDED,
    "tokens_revoked": SlackEventKind.AUTH_INVALID,
    "app_uninstalled": SlackEventKind.AUTH_INVALID,
    "hello": SlackEventKind.CONNECTED,
    "presence_change": SlackEventKind.PRESENCE,
    "pong": SlackEventKind.LATENCY,
    "error": SlackEventKind.ERROR,
    "disconnect": SlackEventKind.DISCONNECTED,
    "goodbye": SlackEventKind.DISCONNECTED,
    "file_comment_edited": SlackEventKind.FILE_COMMENT_EDITED,
    "file_public": SlackEventKind.FILE_PUBLIC,
    "file_shared": SlackEventKind.FILE_SHARED,
    "channel_joined": SlackEventKind.CHANNEL_JOINED,
    "member_joined_channel": SlackEventKind.CHANNEL_JOINED,
    "reaction_added": SlackEventKind.REACTION_ADDED,
    "msg_too_long": SlackEventKind.MESSAGE_TOO_LONG,
}

# Message subtypes that still carry a user's text worth relaying.
RELAYED_MESSAGE_SUBTYPES = {None, "bot_message", "file_share", "thread_broadcast", "me_message"}

# Slack API error codes meaning our credentials are no longer any good.
AUTH_ERROR_CODES = {"invalid_auth", "not_authed", "token_revoked", "token_expired", "account_inactive"}


@dataclass
class SlackEvent:
    kind: SlackEventKind
    data: dict = field(default_factory=dict)

    @property
    def raw_type(self) -> Optional[str]:
        return self.data.get("type")

    @classmethod
    def from_payload(cls, payload: dict) -> "SlackEvent":
        kind = RAW_EVENT_KINDS.get(payload.get("type"), SlackEventKind.UNRECOGNIZED)
        if kind is SlackEventKind.TEXT_POSTED and payload.get("subtype") not in RELAYED_MESSAGE_SUBTYPES:
            kind = SlackEventKind.UNRECOGNIZED
        return cls(kind=kind, data=payload)

    @classmethod
    def auth_invalid(cls, reason: str) -> "SlackEvent":
        return cls(kind=SlackEventKind.AUTH_INVALID, data={"type": "auth_invalid", "reason": reason})

    @property
    def action(self) -> EventAction:
        return EVENT_ACTIONS.get(self.kind, EventAction.LOG_ONLY)


def is_auth_failure(error_code: Optional[str]) -> bool:
    return error_code in AUTH_ERROR_CODES


class SlackEventStream:
    """
    The ordered stream of Slack events, with one consumer. Once closed,
    pending and future events are dropped, since nobody will read them.
    """
    def __init__(self):
        self._queue: Queue = Queue()
        self.closed = False

    async def put(self, event: SlackEvent):
        if self.closed:
            return
        await self._queue.put(event)

    def put_nowait(self, event: SlackEvent):
        if self.closed:
            return
        self._queue.put_nowait(event)

    async def get(self) -> SlackEvent:
        return await self._queue.get()

    def task_done(self):
        self._queue.task_done()

    async def join(self):
        await self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()

    def close(self):
        self.closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
