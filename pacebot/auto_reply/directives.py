"""
Reply directive extraction for PaceBot auto-reply.

The model is asked to answer with a JSON payload:
    {"text": "...", "reaction": "😂" | null, "forward": true | false}

Older prompts (and models that ignore the instruction) embed directives
inline as %token% tags instead:
    "Sure! %😂% %business% I'll follow up."

Both forms are accepted. Tags are always stripped from the delivered text.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any

# A tag is a single whitespace-free token between percent signs, so prose
# like "50% off, 20% more" is left alone.
TAG_PATTERN = re.compile(r"%([^%\s]+)%")
FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)
WHITESPACE_PATTERN = re.compile(r"\s+")

STRUCTURED_REPLY_INSTRUCTIONS = (
    "Answer with a single JSON object and nothing else: "
    '{"text": <your reply>, "reaction": <one emoji to react to their message with, or null>, '
    '"forward": <true if this is a business enquiry the owner should see, else false>}.'
)


@dataclass
class ReplyDirectives:
    """Side actions requested alongside a reply."""
    reaction_glyph: str | None = None
    is_business: bool = False


@dataclass
class ParsedReply:
    """Generated text split into deliverable text and directives."""
    raw: str  # Text as returned by the model
    text: str = ""  # Cleaned text to send
    directives: ReplyDirectives = field(default_factory=ReplyDirectives)
    tokens: list[str] = field(default_factory=list)  # All tags found, in order
    structured: bool = False  # True if parsed from a JSON payload


def extract_tags(text: str) -> list[str]:
    """Get every %token% tag in order of appearance."""
    return [match.group(1) for match in TAG_PATTERN.finditer(text)]


def strip_tags(text: str) -> str:
    """Remove all tags and collapse the whitespace they leave behind."""
    stripped = TAG_PATTERN.sub("", text)
    return WHITESPACE_PATTERN.sub(" ", stripped).strip()


def _parse_structured(raw: str) -> dict[str, Any] | None:
    """Parse a JSON reply payload, or return None if `raw` is prose."""
    candidate = raw.strip()
    fenced = FENCE_PATTERN.match(candidate)
    if fenced:
        candidate = fenced.group(1)

    if not candidate.startswith("{"):
        return None

    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError:
        return None

    if not isinstance(payload, dict) or not isinstance(payload.get("text"), str):
        return None
    return payload


def parse_reply(raw: str, business_token: str = "business") -> ParsedReply:
    """
    Split generated text into the reply to send and its directives.

    Tag rules: a tag equal to `business_token` sets the business flag; the
    first other tag is the reaction glyph; the rest are dropped.

    Args:
        raw: Model output.
        business_token: Reserved directive for forwarding to the operator.

    Returns:
        ParsedReply with cleaned text and directives.
    """
    reserved = business_token.lower()
    payload = _parse_structured(raw)

    body = payload["text"] if payload is not None else raw
    tokens = extract_tags(body)

    glyph: str | None = None
    is_business = False
    for token in tokens:
        if token.lower() == reserved:
            is_business = True
        elif glyph is None:
            glyph = token

    if payload is not None:
        reaction = payload.get("reaction")
        if isinstance(reaction, str) and reaction.strip():
            reaction = reaction.strip().strip("%")
            if reaction.lower() == reserved:
                is_business = True
            else:
                glyph = reaction
        if payload.get("forward") is True:
            is_business = True

    return ParsedReply(
        raw=raw,
        text=strip_tags(body),
        directives=ReplyDirectives(reaction_glyph=glyph, is_business=is_business),
        tokens=tokens,
        structured=payload is not None,
    )
