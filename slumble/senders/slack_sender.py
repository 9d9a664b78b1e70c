# slumble/senders/slack_sender.py

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient
from slumble.core_logic.conduit import Conduit
from slumble.core_logic.formatting import InlineImage, mumble_to_slack
from slumble.core_logic.relay_message import RelayMessage

IMAGE_TITLE = "Mumble Image"


class SlackDispatcher:
    """
    Sends a relayed Mumble message to Slack: inline images become file
    uploads, the rest is posted as plain text under the relay's name.
    """
    def __init__(self, slack_client: AsyncWebClient, channel_id: str, relay_name: str):
        self.slack_client = slack_client
        self.channel_id = channel_id
        self.relay_name = relay_name

    async def upload_image(self, image: InlineImage) -> bool:
        try:
            await self.slack_client.files_upload_v2(
                channel=self.channel_id,
                title=IMAGE_TITLE,
                filename=f"mumble-image.{image.extension}",
                content=image.content,
            )
        except SlackApiError as e:
            print(f"[SLACK_SENDER] Image upload failed: {e.response.get('error')}")
            return False
        print(f"[SLACK_SENDER] Uploaded {image.mime_type} image ({len(image.content)} bytes).")
        return True

    async def post_text(self, text: str) -> bool:
        try:
            await self.slack_client.chat_postMessage(
                channel=self.channel_id,
                text=text,
                username=self.relay_name,
            )
        except SlackApiError as e:
            print(f"[SLACK_SENDER] Message post failed: {e.response.get('error')}")
            return False
        print(f"[SLACK_SENDER] Message sent successfully to channel {self.channel_id}.")
        return True

    async def dispatch(self, message: RelayMessage):
        extracted = mumble_to_slack(message.render())
        for image in extracted.images:
            await self.upload_image(image)
        await self.post_text(extracted.text)


async def slack_sender_worker(conduit: Conduit, dispatcher: SlackDispatcher):
    """
    The only consumer of the conduit. Drains it in order for as long as the
    relay runs; a failure on one message never stops the next.
    """
    print("[SLACK_SENDER] Worker started.")
    while True:
        message = await conduit.get()
        try:
            await dispatcher.dispatch(message)
        except Exception as e:
            print(f"CRITICAL ERROR in Slack Sender Worker: {e}")
        finally:
            conduit.task_done()
