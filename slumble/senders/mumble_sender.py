# slumble/senders/mumble_sender.py


class MumbleSender:
    """Posts text into whatever Mumble channel the relay is sitting in."""

    def __init__(self, mumble):
        self.mumble = mumble

    def send(self, text: str) -> bool:
        try:
            channel = self.mumble.my_channel()
            channel.send_text_message(text)
        except Exception as e:
            # pymumble raises TextTooLongError past the server's message limit
            print(f"[MUMBLE_SENDER] Could not send message to Mumble: {e}")
            return False
        print(f"[MUMBLE_SENDER] Message sent successfully to channel '{channel['name']}'.")
        return True
