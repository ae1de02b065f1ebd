"""Tests for turning an Announcement into a Discord message payload."""

import pytest

from herald.features.render import parse_color, render_announcement
from herald.models import (
    EVERYONE,
    Announcement,
    AttachmentFile,
    AttachmentPlacement,
    Button,
    EmbedSpec,
)


def _files():
    return [
        AttachmentFile("a.png", "/uploads/1-a.png", 10, "image/png"),
        AttachmentFile("b.pdf", "/uploads/2-b.pdf", 20, "application/pdf"),
    ]


class TestContent:
    def test_plain_text_without_mention(self):
        rendered = render_announcement(Announcement(channel_id="C1", text_content="Hello"))

        assert rendered.content == "Hello"
        assert rendered.embed is None
        assert rendered.allowed_mentions.everyone is False
        assert rendered.allowed_mentions.roles is False

    def test_everyone_prefix_and_allow_flag(self):
        rendered = render_announcement(Announcement(channel_id="C1", text_content="Hello", role_mention=EVERYONE))

        assert rendered.content == "@everyone Hello"
        assert rendered.allowed_mentions.everyone is True
        assert rendered.allowed_mentions.roles is False

    def test_role_prefix_allows_only_that_role(self):
        rendered = render_announcement(Announcement(channel_id="C1", text_content="Hello", role_mention="123"))

        assert rendered.content == "<@&123> Hello"
        assert rendered.allowed_mentions.everyone is False
        assert [o.id for o in rendered.allowed_mentions.roles] == [123]

    def test_non_numeric_role_is_not_mentioned(self):
        rendered = render_announcement(Announcement(channel_id="C1", text_content="Hello", role_mention="staff"))

        assert rendered.content == "Hello"
        assert rendered.allowed_mentions.roles is False


class TestEmbed:
    def test_embed_takes_body_and_content_stays_empty(self):
        ann = Announcement(channel_id="C1", text_content="body", embed=EmbedSpec(title="T", color="#ff0000"))

        rendered = render_announcement(ann)

        assert rendered.content is None
        assert rendered.embed.title == "T"
        assert rendered.embed.color.value == 0xFF0000
        assert rendered.embed.description == "body"

    def test_embed_with_mention_keeps_only_mention(self):
        ann = Announcement(
            channel_id="C1",
            text_content="body",
            role_mention="77",
            embed=EmbedSpec(description="own description"),
        )

        rendered = render_announcement(ann)

        assert rendered.content == "<@&77>"
        assert "body" not in rendered.content
        assert rendered.embed.description == "own description"

    def test_bad_color_renders_colorless(self):
        rendered = render_announcement(
            Announcement(channel_id="C1", text_content="x", embed=EmbedSpec(title="T", color="notacolor"))
        )

        assert rendered.embed is not None
        assert rendered.embed.color is None

    def test_images_and_footer(self):
        spec = EmbedSpec(
            title="T",
            image_url="https://img.example/a.png",
            thumbnail_url="https://img.example/t.png",
            footer_text="by ops",
        )

        emb = render_announcement(Announcement(channel_id="C1", embed=spec)).embed

        assert emb.image.url == "https://img.example/a.png"
        assert emb.thumbnail.url == "https://img.example/t.png"
        assert emb.footer.text == "by ops"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("#ff0000", 0xFF0000),
        ("00ff00", 0x00FF00),
        ("  #0000FF ", 0x0000FF),
        ("0x123abc", 0x123ABC),
        (255, 255),
        ("16711680", 0xFF0000),
        ("notacolor", None),
        ("#fff", None),
        (-1, None),
        (0x1000000, None),
        (True, None),
        (None, None),
        (1.5, None),
    ],
)
def test_parse_color(raw, expected):
    assert parse_color(raw) == expected


class TestButtons:
    def test_capped_at_five_in_order(self):
        buttons = [Button(f"b{i}", f"https://example.com/{i}") for i in range(7)]

        rendered = render_announcement(Announcement(channel_id="C1", text_content="x", buttons=buttons))

        assert [b.label for b in rendered.buttons] == ["b0", "b1", "b2", "b3", "b4"]

    def test_incomplete_entries_dropped(self):
        buttons = [Button("", "https://a"), Button("ok", "https://b"), Button("no-url", "")]

        rendered = render_announcement(Announcement(channel_id="C1", text_content="x", buttons=buttons))

        assert rendered.buttons == [Button("ok", "https://b")]

    async def test_view_holds_link_buttons(self):
        buttons = [Button("Docs", "https://docs.example"), Button("Shop", "https://shop.example")]
        rendered = render_announcement(Announcement(channel_id="C1", text_content="x", buttons=buttons))

        view = rendered.make_view()

        assert [(c.label, c.url) for c in view.children] == [
            ("Docs", "https://docs.example"),
            ("Shop", "https://shop.example"),
        ]

    def test_no_view_without_buttons(self):
        assert render_announcement(Announcement(channel_id="C1", text_content="x")).make_view() is None


class TestAttachmentPlacement:
    def test_before_text_rides_in_same_message(self):
        ann = Announcement(channel_id="C1", text_content="x", attachments=_files())

        rendered = render_announcement(ann)

        assert [f.original_name for f in rendered.files] == ["a.png", "b.pdf"]
        assert rendered.followup_files == []

    def test_after_text_goes_to_followup(self):
        ann = Announcement(
            channel_id="C1",
            text_content="x",
            attachments=_files(),
            attachment_placement=AttachmentPlacement.AFTER_TEXT,
        )

        rendered = render_announcement(ann)

        assert rendered.files == []
        assert [f.original_name for f in rendered.followup_files] == ["a.png", "b.pdf"]
