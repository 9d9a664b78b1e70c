# slumble/core_logic/formatting.py
"""Markup conversion between Mumble (HTML subset) and Slack (mrkdwn).

Mumble -> Slack:
  - inline images (<img src="data:image/...;base64,...">) are pulled out so
    they can be uploaded as files
  - everything else loses its tags, <br> becomes a newline

Slack -> Mumble:
  - <url|label> links become <a href="url">label</a>
  - newlines become <br />
"""

import base64
import binascii
import re
from dataclasses import dataclass, field
from typing import List
from urllib.parse import unquote

UNTITLED_LINK_LABEL = "Link has no title"

SLACK_LINK_PATTERN = re.compile(r"<(https?://[^|>\s]*)(?:\|([^>]*))?>")
BR_TAG_PATTERN = re.compile(r"<br\s*/?>", re.IGNORECASE)
# A tag starts right after '<' with a name, '/' or '!'. "a < b > c" is not a tag.
TAG_PATTERN = re.compile(r"</?[A-Za-z!][^<>]*>")

IMG_OPEN = '<img src="'
DATA_URI_PREFIX = "data:image/"
BASE64_MARKER = "base64,"


@dataclass(frozen=True)
class InlineImage:
    mime_type: str
    content: bytes

    @property
    def extension(self) -> str:
        subtype = self.mime_type.split("/", 1)[-1]
        return subtype.split("+", 1)[0] or "bin"


@dataclass
class ExtractedBody:
    text: str
    images: List[InlineImage] = field(default_factory=list)


def _link_to_anchor(match: re.Match) -> str:
    url, label = match.group(1), match.group(2)
    return f'<a href="{url}">{label or UNTITLED_LINK_LABEL}</a>'


def slack_links_to_html(text: str) -> str:
    return SLACK_LINK_PATTERN.sub(_link_to_anchor, text)


def slack_to_mumble(text: str) -> str:
    """Converts a Slack message body into the HTML Mumble renders."""
    if not text:
        return text
    return slack_links_to_html(text).replace("\n", "<br />")


def strip_tags(text: str) -> str:
    if not text:
        return text
    text = BR_TAG_PATTERN.sub("\n", text)
    return TAG_PATTERN.sub("", text)


def _decode_base64_payload(payload: str) -> bytes:
    cleaned = unquote(payload.replace(" ", ""))
    return base64.b64decode(cleaned, validate=True)


def extract_inline_images(body: str) -> ExtractedBody:
    """
    Scans a Mumble body for embedded data-URI images and decodes them.

    Successfully decoded images are removed from the returned text. An image
    that cannot be decoded is reported and left in place; a tag with no
    closing quote or no base64 marker is not treated as an image at all.
    """
    images: List[InlineImage] = []
    kept: List[str] = []
    pos = 0

    while True:
        start = body.find(IMG_OPEN, pos)
        if start == -1:
            break

        uri_start = start + len(IMG_OPEN)
        if not body.startswith(DATA_URI_PREFIX, uri_start):
            kept.append(body[pos:uri_start])
            pos = uri_start
            continue

        uri_end = body.find('"', uri_start)
        if uri_end == -1:
            # Unterminated src attribute, nothing more to scan.
            break

        uri = body[uri_start:uri_end]
        marker = uri.find(BASE64_MARKER)
        if marker == -1:
            kept.append(body[pos:uri_end])
            pos = uri_end
            continue

        mime_type = uri[len("data:"):marker].rstrip(";")
        payload = uri[marker + len(BASE64_MARKER):]
        tag_end = body.find(">", uri_end)
        tag_end = uri_end + 1 if tag_end == -1 else tag_end + 1

        try:
            content = _decode_base64_payload(payload)
        except (binascii.Error, ValueError) as e:
            print(f"[FORMATTING] Could not decode inline {mime_type} image, skipping it: {e}")
            kept.append(body[pos:tag_end])
        else:
            images.append(InlineImage(mime_type=mime_type, content=content))
            kept.append(body[pos:start])
        pos = tag_end

    kept.append(body[pos:])
    return ExtractedBody(text="".join(kept), images=images)


def mumble_to_slack(body: str) -> ExtractedBody:
    """Splits a Mumble body into plain text for Slack plus the images it carried."""
    extracted = extract_inline_images(body)
    extracted.text = strip_tags(extracted.text)
    return extracted
