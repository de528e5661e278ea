"""
Unit tests for share links.

Tests cover:
- Link construction
- Decoding from every accepted form
- Interop with links built by the web client
- Rejection of corrupted links
"""

import base64
import json
from urllib.parse import quote, unquote

import pytest

from backstage.errors import InvalidShareLinkError
from backstage.models import Note
from backstage.sharing import build_share_link, decode_share_fragment, encode_share_fragment


@pytest.fixture
def note():
    return Note(
        id="id_1700000000000_abc1234",
        title="Café ☕ notes",
        content="Line one\nLine two & more: 100%",
        created_at="2024-01-01T00:00:00.000Z",
        updated_at="2024-01-02T00:00:00.000Z",
        owner_email="owner@x.com",
        is_markdown=True,
    )


class TestShareLinks:
    """Tests for encoding and decoding share links."""

    def test_link_drops_query_and_fragment(self, note):
        link = build_share_link("https://app.example/notes?tab=1#old", note)
        assert link.startswith("https://app.example/notes#note=")

    def test_link_never_carries_owner(self, note):
        fragment = encode_share_fragment(note)
        payload = unquote(base64.b64decode(fragment[len("note="):]).decode())
        assert "owner@x.com" not in payload
        assert "ownerEmail" not in payload

    @pytest.mark.parametrize("prefix", ["", "#", "https://app.example/#"])
    def test_decode_accepted_forms(self, note, prefix):
        decoded = decode_share_fragment(prefix + encode_share_fragment(note))
        assert decoded.title == note.title
        assert decoded.content == note.content
        assert decoded.is_markdown is True
        assert decoded.owner_email is None

    def test_decodes_client_built_link(self):
        # encodeURIComponent output for the payload, as the web client builds it
        payload = json.dumps({
            "id": "n1",
            "title": "Héllo (world)!",
            "content": "x",
            "createdAt": "2024-01-01T00:00:00.000Z",
            "updatedAt": "2024-01-01T00:00:00.000Z",
        })
        encoded = base64.b64encode(quote(payload, safe="-_.!~*'()").encode()).decode()

        decoded = decode_share_fragment(f"#note={encoded}")

        assert decoded.title == "Héllo (world)!"

    def test_missing_padding_is_tolerated(self, note):
        fragment = encode_share_fragment(note).rstrip("=")
        assert decode_share_fragment(fragment).id == note.id

    @pytest.mark.parametrize("fragment", [
        "",
        "#other=abc",
        "#note=",
        "#note=!!!not-base64!!!",
        "#note=" + base64.b64encode(b"%E0%A4%A").decode(),
        "#note=" + base64.b64encode(b"%5B1%2C2%5D").decode(),
        "#note=" + base64.b64encode(b"%7B%22title%22%3A%22x%22%7D").decode(),
    ])
    def test_corrupted_links_rejected(self, fragment):
        with pytest.raises(InvalidShareLinkError):
            decode_share_fragment(fragment)
