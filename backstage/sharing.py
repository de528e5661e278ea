"""
Serverless share links for notes.

A note is shared by packing it into the URL fragment:

    <base url>#note=<base64(percent-encode(JSON))>

Percent-encoding matches JavaScript's encodeURIComponent so links built by
older clients decode here and vice versa.

Invariants:
    - decode(encode(note)) yields the note's public fields
    - Any malformed fragment raises InvalidShareLinkError, nothing else
    - Share links never carry the owner's email
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from urllib.parse import quote, unquote, urlsplit

from .errors import InvalidShareLinkError
from .models import Note

logger = logging.getLogger(__name__)

FRAGMENT_KEY = "note="

# Characters encodeURIComponent leaves alone besides ASCII letters and digits
_URI_COMPONENT_SAFE = "-_.!~*'()"


def encode_share_fragment(note: Note) -> str:
    """Encode a note as a `note=...` fragment (without the leading '#')."""
    payload = json.dumps(note.public_dict(), ensure_ascii=False, separators=(",", ":"))
    percent_encoded = quote(payload, safe=_URI_COMPONENT_SAFE)
    return FRAGMENT_KEY + base64.b64encode(percent_encoded.encode("ascii")).decode("ascii")


def build_share_link(base_url: str, note: Note) -> str:
    """Share link for a note, dropping any query or fragment from base_url."""
    base = base_url.split("?")[0].split("#")[0]
    return f"{base}#{encode_share_fragment(note)}"


def decode_share_fragment(fragment: str) -> Note:
    """Decode a share fragment back into a note.

    Args:
        fragment: `#note=...`, `note=...` or a full share URL

    Raises:
        InvalidShareLinkError: If the fragment is missing or corrupted
    """
    if not fragment:
        raise InvalidShareLinkError("Share link is empty.")

    if "://" in fragment:
        fragment = urlsplit(fragment).fragment
    fragment = fragment.lstrip("#")
    if not fragment.startswith(FRAGMENT_KEY):
        raise InvalidShareLinkError("Share link has no note.")

    encoded = fragment[len(FRAGMENT_KEY):].strip()
    try:
        padded = encoded + "=" * (-len(encoded) % 4)
        percent_encoded = base64.b64decode(padded, validate=True).decode("ascii")
        payload = unquote(percent_encoded, errors="strict")
        data = json.loads(payload)
        if not isinstance(data, dict):
            raise ValueError("payload is not an object")
        note = Note.from_dict(data)
    except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
        logger.info(f"Rejected share link: {e}")
        raise InvalidShareLinkError() from e

    note.owner_email = None
    return note
