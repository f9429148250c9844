"""Tests for core.provider: the OpenAI-backed conversation session."""
from __future__ import annotations

import asyncio
from dataclasses import replace
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from conftest import PERSONA
from core.provider import (
    ConversationSession,
    ConversationTurn,
    GenerationConfig,
    OpenAISessionFactory,
    ProviderError,
    bootstrap_turns,
)
from core.sessions import is_overloaded

API_URL = "https://api.openai.com/v1/chat/completions"


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def fake_client(*outcomes) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=list(outcomes))
    client.close = AsyncMock()
    return client


def status_error(code: int, message: str = "upstream failure") -> openai.APIStatusError:
    response = httpx.Response(code, request=httpx.Request("POST", API_URL))
    return openai.APIStatusError(message, response=response, body=None)


class TestBootstrap:
    def test_two_seed_turns(self):
        turns = bootstrap_turns(PERSONA)
        assert [t.role for t in turns] == ["user", "model"]
        assert turns[0].text == "System Protocol: Initialize Personality. Stay in character."
        assert turns[1].text == "Protocol accepted."

    def test_role_mapping(self):
        assert ConversationTurn("model", "hi").to_message() == {"role": "assistant", "content": "hi"}
        assert ConversationTurn("user", "yo").to_message() == {"role": "user", "content": "yo"}


class TestSendMessage:
    def test_success_appends_turn_pair(self):
        client = fake_client(completion(" Very well. "))
        session = ConversationSession(client=client, model="m", seed=bootstrap_turns(PERSONA))

        reply = asyncio.run(session.send_message("yuji: hello"))

        assert reply == " Very well. "
        assert [t.role for t in session.history] == ["user", "model", "user", "model"]
        assert session.history[-2:] == [
            ConversationTurn("user", "yuji: hello"),
            ConversationTurn("model", " Very well. "),
        ]
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "m"
        assert kwargs["max_tokens"] == 8000
        assert kwargs["temperature"] == 0.7
        assert kwargs["messages"][-1] == {"role": "user", "content": "yuji: hello"}
        assert kwargs["messages"][1]["role"] == "assistant"
        assert len(kwargs["messages"]) == 3

    def test_history_carries_over(self):
        client = fake_client(completion("a"), completion("b"))
        session = ConversationSession(client=client, model="m")

        async def run():
            await session.send_message("one")
            await session.send_message("two")

        asyncio.run(run())
        sent = client.chat.completions.create.await_args.kwargs["messages"]
        assert [m["content"] for m in sent] == ["one", "a", "two"]

    def test_empty_content(self):
        session = ConversationSession(client=fake_client(completion(None)), model="m")
        assert asyncio.run(session.send_message("x")) == ""

    def test_status_error_keeps_code_and_leaves_history(self):
        session = ConversationSession(
            client=fake_client(status_error(503)), model="m", seed=bootstrap_turns(PERSONA)
        )
        with pytest.raises(ProviderError) as info:
            asyncio.run(session.send_message("x"))
        assert info.value.status_code == 503
        assert is_overloaded(info.value)
        assert len(session.history) == 2

    def test_fatal_status_error(self):
        session = ConversationSession(client=fake_client(status_error(401, "bad key")), model="m")
        with pytest.raises(ProviderError) as info:
            asyncio.run(session.send_message("x"))
        assert info.value.status_code == 401
        assert not is_overloaded(info.value)

    def test_connection_error_has_no_status(self):
        error = openai.APIConnectionError(request=httpx.Request("POST", API_URL))
        session = ConversationSession(client=fake_client(error), model="m")
        with pytest.raises(ProviderError) as info:
            asyncio.run(session.send_message("x"))
        assert info.value.status_code is None


class TestFactory:
    def test_builds_seeded_sessions(self):
        client = fake_client()
        factory = OpenAISessionFactory(
            model="gpt-test",
            persona=PERSONA,
            client=client,
            generation=GenerationConfig(max_output_tokens=64, temperature=0.1),
        )
        first, second = factory(), factory()
        assert first is not second
        assert first.client is second.client is client
        assert first.model == "gpt-test"
        assert first.generation.max_output_tokens == 64
        assert first.history == bootstrap_turns(PERSONA)

    def test_close(self):
        client = fake_client()
        factory = OpenAISessionFactory(model="m", persona=PERSONA, client=client)
        asyncio.run(factory.close())
        client.close.assert_awaited_once()


class TestHistoryLimit:
    def test_payload_stays_bounded_after_many_calls(self):
        replies = [completion(f"r{i}") for i in range(500)]
        client = fake_client(*replies)
        session = ConversationSession(
            client=client,
            model="m",
            seed=bootstrap_turns(PERSONA),
            generation=GenerationConfig(max_history=10),
        )

        async def run():
            for i in range(500):
                await session.send_message(f"u{i}")

        asyncio.run(run())
        sent = client.chat.completions.create.await_args.kwargs["messages"]
        assert len(sent) == 2 + 10 + 1
        assert sent[0]["content"].startswith("System Protocol: Initialize Personality.")
        assert sent[1] == {"role": "assistant", "content": "Protocol accepted."}
        assert sent[2] == {"role": "user", "content": "u494"}
        assert sent[-1] == {"role": "user", "content": "u499"}
        assert len(session.history) == 12

    def test_odd_limit_keeps_whole_pairs(self):
        session = ConversationSession(
            client=fake_client(completion("a"), completion("b")),
            model="m",
            generation=GenerationConfig(max_history=3),
        )

        async def run():
            await session.send_message("one")
            await session.send_message("two")

        asyncio.run(run())
        assert [t.text for t in session.history] == ["two", "b"]

    def test_default_limit(self):
        assert GenerationConfig().max_history == 50

    def test_short_summary_seeds_when_instruction_missing(self):
        persona = replace(PERSONA, instruction="")
        turns = bootstrap_turns(persona)
        assert turns[0].text == f"System Protocol: Initialize Personality. {PERSONA.short}"
