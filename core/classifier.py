"""Turn raw chat text into an intent the responder can dispatch on."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Union

CREATE_TOKEN = "create"
CREATE_FALLBACK = "(nothing)"
SAY_TOKEN = "say"


@dataclass(frozen=True)
class CreateResource:
    payload: str


@dataclass(frozen=True)
class Say:
    text: str


@dataclass(frozen=True)
class MentionOrCommand:
    text: str


@dataclass(frozen=True)
class Noop:
    pass


NOOP = Noop()

Intent = Union[CreateResource, Say, MentionOrCommand, Noop]


def mention_pattern(bot_id: str) -> re.Pattern:
    return re.compile(rf"<@!?{re.escape(str(bot_id))}>")


def classify(content: str, bot_id: Optional[str], prefix: str) -> Intent:
    """Classify a (trimmed) message.

    ``create`` wins over everything and needs no prefix. Otherwise the bot
    must be mentioned or the prefix used, or the message is ignored.
    """

    if content.startswith(CREATE_TOKEN):
        payload = content.partition(CREATE_TOKEN)[2].strip()
        return CreateResource(payload or CREATE_FALLBACK)

    mention = mention_pattern(bot_id) if bot_id else None
    was_mentioned = bool(mention and mention.search(content))
    is_command = bool(prefix) and content.startswith(prefix)
    if not (was_mentioned or is_command):
        return NOOP

    stripped = content
    if was_mentioned:
        stripped = mention.sub("", content, count=1).strip()
    if is_command:
        stripped = content[len(prefix):].strip()

    if stripped.lower().startswith(SAY_TOKEN):
        return Say(stripped[len(SAY_TOKEN):].strip())
    return MentionOrCommand(stripped)
