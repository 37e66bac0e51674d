"""
Tests for reply directive extraction.
"""

import json

import pytest

from pacebot.auto_reply.directives import extract_tags, parse_reply, strip_tags


class TestTagParsing:
    """Tests for inline %token% tags."""

    def test_reaction_and_business(self):
        parsed = parse_reply("Sure! %smile% %business% I'll follow up.")

        assert parsed.text == "Sure! I'll follow up."
        assert parsed.directives.reaction_glyph == "smile"
        assert parsed.directives.is_business is True
        assert parsed.tokens == ["smile", "business"]
        assert parsed.structured is False

    def test_plain_text_untouched(self):
        parsed = parse_reply("See you tomorrow")

        assert parsed.text == "See you tomorrow"
        assert parsed.directives.reaction_glyph is None
        assert parsed.directives.is_business is False

    def test_business_only(self):
        parsed = parse_reply("%business% Let me check with the team")

        assert parsed.text == "Let me check with the team"
        assert parsed.directives.reaction_glyph is None
        assert parsed.directives.is_business is True

    def test_first_glyph_wins(self):
        parsed = parse_reply("%😂% haha %🔥%")

        assert parsed.text == "haha"
        assert parsed.directives.reaction_glyph == "😂"

    def test_business_token_case_insensitive(self):
        assert parse_reply("ok %Business%").directives.is_business is True

    def test_custom_business_token(self):
        parsed = parse_reply("ok %work% %business%", business_token="work")

        assert parsed.directives.is_business is True
        assert parsed.directives.reaction_glyph == "business"

    def test_percent_signs_in_prose(self):
        parsed = parse_reply("It's 50% off and 20% more today")

        assert parsed.text == "It's 50% off and 20% more today"
        assert parsed.tokens == []

    def test_tag_only_reply_is_empty(self):
        parsed = parse_reply("%👍%")

        assert parsed.text == ""
        assert parsed.directives.reaction_glyph == "👍"

    def test_extract_and_strip(self):
        assert extract_tags("a %x% b %y%") == ["x", "y"]
        assert strip_tags("a  %x%   b\n%y%") == "a b"


class TestStructuredParsing:
    """Tests for JSON reply payloads."""

    def test_payload_fields(self):
        raw = json.dumps({"text": "On my way", "reaction": "👍", "forward": True})

        parsed = parse_reply(raw)

        assert parsed.structured is True
        assert parsed.text == "On my way"
        assert parsed.directives.reaction_glyph == "👍"
        assert parsed.directives.is_business is True

    def test_payload_without_directives(self):
        raw = json.dumps({"text": "hi", "reaction": None, "forward": False})

        parsed = parse_reply(raw)

        assert parsed.text == "hi"
        assert parsed.directives.reaction_glyph is None
        assert parsed.directives.is_business is False

    def test_fenced_payload(self):
        raw = '```json\n{"text": "hello", "reaction": "😊", "forward": false}\n```'

        parsed = parse_reply(raw)

        assert parsed.structured is True
        assert parsed.text == "hello"
        assert parsed.directives.reaction_glyph == "😊"

    def test_tags_inside_payload_text_are_stripped(self):
        raw = json.dumps({"text": "Sure %wave% thing", "reaction": None})

        parsed = parse_reply(raw)

        assert parsed.text == "Sure thing"
        assert parsed.directives.reaction_glyph == "wave"

    def test_payload_reaction_overrides_tag(self):
        raw = json.dumps({"text": "Sure %wave% thing", "reaction": "🔥"})

        assert parse_reply(raw).directives.reaction_glyph == "🔥"

    def test_business_as_reaction_sets_flag(self):
        raw = json.dumps({"text": "Noted", "reaction": "%business%"})

        parsed = parse_reply(raw)

        assert parsed.directives.is_business is True
        assert parsed.directives.reaction_glyph is None

    @pytest.mark.parametrize(
        "raw",
        [
            "{oops %smile%",
            '{"reply": "wrong key"}',
            '{"text": 42}',
        ],
    )
    def test_invalid_payload_falls_back_to_tags(self, raw):
        parsed = parse_reply(raw)

        assert parsed.structured is False
        assert parsed.raw == raw
