"""Chat sessions against the remote text model (OpenAI Chat Completions)."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional

import openai
from openai import AsyncOpenAI

from .persona import Persona

log = logging.getLogger(__name__)

USER_ROLE = "user"
MODEL_ROLE = "model"

_API_ROLES = {USER_ROLE: "user", MODEL_ROLE: "assistant"}


class ProviderError(Exception):
    """A failed call to the text model. ``status_code`` is the HTTP status when known."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class ConversationTurn:
    role: str
    text: str

    def to_message(self) -> dict:
        return {"role": _API_ROLES[self.role], "content": self.text}


@dataclass(frozen=True)
class GenerationConfig:
    max_output_tokens: int = 8000
    temperature: float = 0.7
    # turns kept after the bootstrap pair; rounded down to whole user/model pairs
    max_history: int = 50


def bootstrap_turns(persona: Persona) -> List[ConversationTurn]:
    """The two opening turns that pin the persona for the session's lifetime."""

    instruction = persona.instruction or persona.short
    return [
        ConversationTurn(USER_ROLE, f"System Protocol: Initialize Personality. {instruction}"),
        ConversationTurn(MODEL_ROLE, persona.acknowledgement or f"{persona.name} online."),
    ]


@dataclass
class ConversationSession:
    client: AsyncOpenAI
    model: str
    seed: List[ConversationTurn] = field(default_factory=list)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    turns: Deque[ConversationTurn] = field(default_factory=deque)

    def __post_init__(self) -> None:
        limit = max(0, self.generation.max_history)
        self.turns = deque(self.turns, maxlen=limit - limit % 2)

    @property
    def history(self) -> List[ConversationTurn]:
        return list(self.seed) + list(self.turns)

    async def send_message(self, text: str) -> str:
        """Send one user turn after the seed and recent history; record both turns on success."""

        messages = [turn.to_message() for turn in self.history]
        messages.append({"role": "user", "content": text})
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.generation.max_output_tokens,
                temperature=self.generation.temperature,
            )
        except openai.APIStatusError as exc:
            raise ProviderError(str(exc), status_code=exc.status_code) from exc
        except openai.OpenAIError as exc:
            raise ProviderError(str(exc)) from exc
        reply = response.choices[0].message.content or ""
        self.turns.append(ConversationTurn(USER_ROLE, text))
        self.turns.append(ConversationTurn(MODEL_ROLE, reply))
        return reply


class OpenAISessionFactory:
    """Builds persona-seeded sessions sharing one API client."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: str,
        persona: Persona,
        generation: Optional[GenerationConfig] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.model = model
        self.persona = persona
        self.generation = generation or GenerationConfig()

    def __call__(self) -> ConversationSession:
        log.info("starting %s session for %s", self.model, self.persona.name)
        return ConversationSession(
            client=self.client,
            model=self.model,
            seed=bootstrap_turns(self.persona),
            generation=self.generation,
        )

    async def close(self) -> None:
        await self.client.close()
