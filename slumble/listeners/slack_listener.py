# slumble/listeners/slack_listener.py

import re
import aiohttp
from typing import Optional
from slack_bolt.async_app import AsyncApp
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient
from slumble.core_logic.formatting import slack_to_mumble
from slumble.core_logic.loop_guard import LoopGuard
from slumble.core_logic.relay_message import RelayMessage, Network
from slumble.core_logic.slack_events import (
    EventAction,
    SlackEvent,
    SlackEventKind,
    SlackEventStream,
    is_auth_failure,
)
from slumble.senders.mumble_sender import MumbleSender

# Socket Mode frames that describe the connection rather than the workspace.
SOCKET_FRAME_TYPES = ("hello", "disconnect")

CHANNEL_ID_PATTERN = re.compile(r"^[CGD][A-Z0-9]+$")


class SlackAuthInvalid(Exception):
    pass


def setup_slack_listener(app: AsyncApp, socket_client, event_queue: SlackEventStream):
    """
    Funnels every Slack event, plus the socket's hello/disconnect frames,
    into a single ordered stream. Nothing is interpreted here.
    """
    print("[SLACK_LISTENER] Setting up event handlers...")

    @app.event(re.compile(".*"))
    async def handle_all_events(event: dict):
        await event_queue.put(SlackEvent.from_payload(event))

    async def handle_socket_frame(client, message: dict, raw_message: Optional[str] = None):
        if message.get("type") in SOCKET_FRAME_TYPES:
            await event_queue.put(SlackEvent.from_payload(message))

    if socket_client is not None:
        socket_client.message_listeners.append(handle_socket_frame)

    print("[SLACK_LISTENER] Event handlers registered.")


async def _resolve_display_name(slack_client: AsyncWebClient, user_id: Optional[str]) -> Optional[str]:
    if not user_id:
        print("[SLACK_LISTENER] Message has no user, skipping.")
        return None
    try:
        response = await slack_client.users_info(user=user_id)
    except SlackApiError as e:
        error = e.response.get("error")
        if is_auth_failure(error):
            raise SlackAuthInvalid(error)
        print(f"[SLACK_LISTENER] Error retrieving slack user {user_id}: {error}")
        return None
    return response["user"]["name"]


def looks_like_channel_id(channel: str) -> bool:
    return bool(CHANNEL_ID_PATTERN.match(channel))


async def resolve_channel_id(slack_client: AsyncWebClient, channel: str) -> str:
    """
    Events carry channel IDs, so a configured channel name ('general' or
    '#general') is looked up once. Falls back to the configured value.
    """
    if looks_like_channel_id(channel):
        return channel
    name = channel.lstrip("#")
    cursor = None
    try:
        while True:
            response = await slack_client.conversations_list(
                types="public_channel,private_channel",
                exclude_archived=True,
                limit=200,
                cursor=cursor,
            )
            for conversation in response.get("channels", []):
                if conversation.get("name") == name:
                    print(f"[SLACK_LISTENER] Resolved channel '#{name}' to {conversation['id']}.")
                    return conversation["id"]
            cursor = (response.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                break
    except SlackApiError as e:
        print(f"[SLACK_LISTENER] Could not look up channel '{channel}': {e.response.get('error')}")
        return channel
    except aiohttp.ClientError as e:
        print(f"[SLACK_LISTENER] Could not look up channel '{channel}': {e}")
        return channel
    print(f"[SLACK_LISTENER] No channel named '{channel}' found; Slack messages will not match it.")
    return channel


async def relay_text_event(
    event: SlackEvent,
    slack_client: AsyncWebClient,
    mumble_sender: MumbleSender,
    loop_guard: LoopGuard,
    channel_id: str,
) -> bool:
    """Relays one TEXT_POSTED event to Mumble. Returns True if something was sent."""
    data = event.data
    if data.get("channel") != channel_id:
        print(f"[SLACK_LISTENER] Ignoring message from non-target channel {data.get('channel')}.")
        return False

    name = await _resolve_display_name(slack_client, data.get("user"))
    if not name or loop_guard.is_echo(Network.SLACK, name):
        return False

    message = RelayMessage(
        sender_display_name=name,
        body=slack_to_mumble(data.get("text") or ""),
        origin=Network.SLACK,
    )
    print(f"[SLACK_LISTENER] Received Slack message from {name}: '{message.body[:50]}...'")
    return mumble_sender.send(message.render())


def _log_event(event: SlackEvent):
    data = event.data
    if event.kind is SlackEventKind.FILE_COMMENT_ADDED:
        comment = data.get("comment") or {}
        if isinstance(comment, dict):
            print(f"[SLACK_LISTENER] File Comment Added: {comment.get('user')}: {comment.get('comment')}")
        else:
            print(f"[SLACK_LISTENER] File Comment Added: {comment}")
    elif event.kind is SlackEventKind.CONNECTED:
        print(f"[SLACK_LISTENER] Connected: {data.get('num_connections', 1)} connection(s).")
    elif event.kind is SlackEventKind.UNRECOGNIZED:
        print(f"[SLACK_LISTENER] Unexpected: {event.raw_type} {data.get('subtype') or ''}".rstrip())
    else:
        print(f"[SLACK_LISTENER] {event.kind.name}: {data}")


def _stop_stream(event_queue: SlackEventStream, reason: str):
    print(f"[SLACK_LISTENER] Invalid credentials ({reason}). Slack -> Mumble relay stopped.")
    # Nothing reads the stream from here on; stop it from piling up.
    event_queue.close()


async def slack_listener_worker(
    event_queue: SlackEventStream,
    slack_client: AsyncWebClient,
    mumble_sender: MumbleSender,
    loop_guard: LoopGuard,
    channel_id: str,
):
    """
    Works through the Slack event stream one event at a time and relays text
    into Mumble. Returns only when Slack tells us our credentials are bad.
    """
    print("[SLACK_LISTENER] Worker started.")
    while True:
        event: SlackEvent = await event_queue.get()
        try:
            if event.action is EventAction.STOP:
                _stop_stream(event_queue, event.data.get("reason") or event.raw_type)
                return

            if event.action is EventAction.RELAY:
                await relay_text_event(event, slack_client, mumble_sender, loop_guard, channel_id)
            else:
                _log_event(event)

        except SlackAuthInvalid as e:
            _stop_stream(event_queue, str(e))
            return
        except Exception as e:
            print(f"CRITICAL ERROR in Slack Listener Worker: {e}")
        finally:
            event_queue.task_done()
