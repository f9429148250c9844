from __future__ import annotations

import random
from typing import List, Optional, Sequence

import pytest

from core.persona import Persona, PersonaReplyGenerator
from core.provider import ConversationSession, ConversationTurn, ProviderError


PERSONA = Persona(
    name="Mechamaru",
    short="A reserved puppet.",
    instruction="Stay in character.",
    acknowledgement="Protocol accepted.",
    idle=("...Yes?", "My strings creak. Give an instruction.", "I will comply. What is it?"),
    templates=(
        "...{text}. I will do it.",
        "Hmph. {text}. Very well.",
        "{text}. That is your wish.",
        "Understood. {text}. I move when you command.",
    ),
    endings=("...", ".", "— as you wish.", "🤖"),
)


class ScriptedRandom:
    """Deterministic rng: ``choice`` walks ``picks`` (indexes), ``random`` returns ``roll``."""

    def __init__(self, picks: Sequence[int] = (0,), roll: float = 0.99):
        self.picks = list(picks)
        self.roll = roll
        self._i = 0

    def choice(self, seq):
        idx = self.picks[self._i % len(self.picks)]
        self._i += 1
        return seq[idx]

    def random(self) -> float:
        return self.roll


class FakeSession:
    """Stands in for ConversationSession; each scripted item is a reply or an exception."""

    def __init__(self, script: Optional[List[object]] = None):
        self.script = list(script or [])
        self.sent: List[str] = []
        self.turns: List[ConversationTurn] = []

    async def send_message(self, text: str) -> str:
        self.sent.append(text)
        outcome = self.script.pop(0) if self.script else "ok"
        if isinstance(outcome, BaseException):
            raise outcome
        self.turns.append(ConversationTurn("user", text))
        self.turns.append(ConversationTurn("model", outcome))
        return outcome


class RecordingSleep:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


@pytest.fixture
def persona() -> Persona:
    return PERSONA


@pytest.fixture
def generator() -> PersonaReplyGenerator:
    return PersonaReplyGenerator(PERSONA, random.Random(1234))


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


def overloaded(message: str = "Service Unavailable") -> ProviderError:
    return ProviderError(message, status_code=503)
