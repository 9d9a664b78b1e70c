# slumble/config/settings.py
import json
import os
from dataclasses import dataclass
from dotenv import load_dotenv

project_root = os.path.join(os.path.dirname(__file__), '..', '..')
dotenv_path = os.path.join(project_root, '.env')
load_dotenv(dotenv_path=dotenv_path, override=True)

REQUIRED_CONFIG_KEYS = ("SlackAPIToken", "SlackChannel")


@dataclass(frozen=True)
class RelayConfig:
    """Credentials and the target channel, read once at startup."""
    slack_api_token: str
    slack_channel: str
    slack_app_token: str = ""


def load_relay_config(file_path: str) -> RelayConfig:
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"CRITICAL: Relay config file not found at '{file_path}'.")
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError:
        raise ValueError(f"CRITICAL: Relay config file at '{file_path}' is not valid JSON.")

    if not isinstance(data, dict):
        raise ValueError(f"CRITICAL: Relay config file at '{file_path}' must contain a JSON object.")
    missing = [key for key in REQUIRED_CONFIG_KEYS if not data.get(key)]
    if missing:
        raise ValueError(f"CRITICAL: Relay config file at '{file_path}' is missing: {', '.join(missing)}")

    return RelayConfig(
        slack_api_token=str(data["SlackAPIToken"]),
        slack_channel=str(data["SlackChannel"]),
        slack_app_token=str(data.get("SlackAppToken") or APP_CONFIG["slack_app_token"] or ""),
    )


APP_CONFIG = {
    "config_path": os.getenv("SLUMBLE_CONFIG", "slumble.config"),
    "mumble_server": os.getenv("MUMBLE_SERVER", "localhost"),
    "mumble_port": int(os.getenv("MUMBLE_PORT", 64738)),
    "mumble_username": os.getenv("MUMBLE_USERNAME", "SlackRelay"),
    "mumble_password": os.getenv("MUMBLE_PASSWORD", ""),
    "mumble_certfile": os.getenv("MUMBLE_CERTFILE") or None,
    "mumble_keyfile": os.getenv("MUMBLE_KEYFILE") or None,
    "slack_app_token": os.getenv("SLACK_APP_TOKEN"),
    "slack_relay_name": os.getenv("SLACK_RELAY_NAME", "mumblerelay"),
    "conduit_max_size": int(os.getenv("CONDUIT_MAX_SIZE", 100)),
}

if APP_CONFIG["mumble_username"] == APP_CONFIG["slack_relay_name"]:
    raise ValueError("CRITICAL: MUMBLE_USERNAME and SLACK_RELAY_NAME must differ, or relayed messages will loop.")
