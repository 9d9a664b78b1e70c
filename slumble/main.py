# slumble/main.py

import asyncio
import traceback
from pymumble_py3 import Mumble
from pymumble_py3.constants import PYMUMBLE_CLBK_CONNECTED, PYMUMBLE_CLBK_TEXTMESSAGERECEIVED
from slack_bolt.async_app import AsyncApp
from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler

from slumble.config.settings import APP_CONFIG, load_relay_config
from slumble.core_logic.loop_guard import RelayIdentity
from slumble.listeners.mumble_listener import MumbleCallbackNames
from slumble.workers.relay import RelayCore


async def main():
    """
    Loads the relay config, builds both network clients and hands them to
    the RelayCore, which runs until the process is stopped.
    """
    print("[MAIN] Initializing application...")
    # A missing or broken config file is fatal; let it propagate.
    relay_config = load_relay_config(APP_CONFIG['config_path'])

    identity = RelayIdentity(
        mumble_name=APP_CONFIG['mumble_username'],
        slack_name=APP_CONFIG['slack_relay_name'],
    )

    # --- PLATFORM CLIENTS INITIALIZATION ---
    mumble = Mumble(
        APP_CONFIG['mumble_server'],
        APP_CONFIG['mumble_username'],
        port=APP_CONFIG['mumble_port'],
        password=APP_CONFIG['mumble_password'],
        certfile=APP_CONFIG['mumble_certfile'],
        keyfile=APP_CONFIG['mumble_keyfile'],
        reconnect=True,
    )
    mumble.set_receive_sound(False)

    slack_app = AsyncApp(token=relay_config.slack_api_token)
    slack_socket_handler = None
    if relay_config.slack_app_token:
        slack_socket_handler = AsyncSocketModeHandler(slack_app, relay_config.slack_app_token)

    relay = RelayCore(
        mumble,
        MumbleCallbackNames(
            connected=PYMUMBLE_CLBK_CONNECTED,
            text_received=PYMUMBLE_CLBK_TEXTMESSAGERECEIVED,
        ),
        slack_app.client,
        relay_config,
        identity,
        socket_handler=slack_socket_handler,
        conduit_max_size=APP_CONFIG['conduit_max_size'],
    )

    try:
        print("--- Relay starting. Press Ctrl+C to stop. ---")
        await relay.run()
    except* Exception as eg:
        print("--- Relay encountered errors: ---")
        for exc in eg.exceptions:
            traceback.print_exception(type(exc), exc, exc.__traceback__)
    finally:
        print("[MAIN] Shutdown complete.")


def run():
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        print("\n[MAIN] Shutdown requested by user.")


if __name__ == "__main__":
    run()
