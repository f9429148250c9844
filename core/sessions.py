"""Provider-backed replies with bounded retry and a rule-based fallback."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from .provider import ConversationSession

log = logging.getLogger(__name__)

SESSION_MODE_SCOPE = "scope"
SESSION_MODE_SHARED = "shared"
SESSION_MODES = (SESSION_MODE_SCOPE, SESSION_MODE_SHARED)
SHARED_SCOPE = "*"

OVERLOADED_STATUS = 503


def is_overloaded(error: BaseException) -> bool:
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    if status == OVERLOADED_STATUS:
        return True
    message = getattr(error, "message", None) or str(error)
    return str(OVERLOADED_STATUS) in str(message)


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    delay: float = 2.0
    is_retryable: Callable[[BaseException], bool] = is_overloaded

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


class ProviderSessionManager:
    """Owns the model conversations and never lets a provider error escape.

    Without a ``session_factory`` (no API key) every call goes straight to the
    fallback generator. With one, sessions are created lazily, one per scope or
    a single shared one depending on ``session_mode``. Calls against the same
    session are serialized so turns land in the order requests were made.
    """

    def __init__(
        self,
        fallback: Callable[[str], str],
        *,
        session_factory: Optional[Callable[[], ConversationSession]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        session_mode: str = SESSION_MODE_SCOPE,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if session_mode not in SESSION_MODES:
            raise ValueError(f"unknown session mode: {session_mode!r}")
        self.fallback = fallback
        self.session_factory = session_factory
        self.retry_policy = retry_policy or RetryPolicy()
        self.session_mode = session_mode
        self._sleep = sleep
        self._sessions: Dict[str, ConversationSession] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def has_provider(self) -> bool:
        return self.session_factory is not None

    @property
    def scopes(self) -> List[str]:
        return list(self._sessions)

    def _key(self, scope_id: str) -> str:
        if self.session_mode == SESSION_MODE_SHARED:
            return SHARED_SCOPE
        return str(scope_id)

    def session_for(self, scope_id: str) -> ConversationSession:
        if self.session_factory is None:
            raise RuntimeError("no provider configured")
        key = self._key(scope_id)
        session = self._sessions.get(key)
        if session is None:
            session = self.session_factory()
            self._sessions[key] = session
            log.info("conversation session created for scope %s", key)
        return session

    async def request_reply(self, scope_id: str, text: str, username: str) -> str:
        if self.session_factory is None:
            return self.fallback(text)

        policy = self.retry_policy
        outbound = f"{username}: {text}"
        retries_left = policy.max_retries
        async with self._locks[self._key(scope_id)]:
            session = self.session_for(scope_id)
            while True:
                try:
                    reply = await session.send_message(outbound)
                    return reply.strip()
                except Exception as exc:
                    if policy.is_retryable(exc) and retries_left > 0:
                        log.warning(
                            "Model overloaded. Retrying... (%d attempts left)", retries_left
                        )
                        await self._sleep(policy.delay)
                        retries_left -= 1
                        continue
                    log.exception("model reply failed for scope %s: %s", scope_id, exc)
                    return self.fallback(text)

    async def close(self) -> None:
        close = getattr(self.session_factory, "close", None)
        if close is not None:
            await close()
