import logging
from typing import Optional

from .classifier import CreateResource, MentionOrCommand, Noop, Say, classify
from .persona import PersonaReplyGenerator
from .sessions import ProviderSessionManager

log = logging.getLogger(__name__)

PONG = "Pong!"
DEFAULT_PREFIX = "!"


class Responder:
    """Classifies inbound chat text and decides what, if anything, to say back."""

    def __init__(
        self,
        generator: PersonaReplyGenerator,
        sessions: ProviderSessionManager,
        *,
        prefix: str = DEFAULT_PREFIX,
    ):
        self.generator = generator
        self.sessions = sessions
        self.prefix = prefix

    @property
    def persona(self):
        return self.generator.persona

    def ping(self) -> str:
        return PONG

    async def handle(
        self,
        scope_id: str,
        raw_content: Optional[str],
        author_id: str,
        username: str,
        bot_id: Optional[str],
    ) -> Optional[str]:
        if bot_id is not None and str(author_id) == str(bot_id):
            return None
        content = (raw_content or "").strip()
        if not content:
            return None

        intent = classify(content, bot_id, self.prefix)
        log.debug("scope %s: %s from %s", scope_id, intent, username)
        if isinstance(intent, CreateResource):
            return f"Short URL created: {intent.payload}"
        if isinstance(intent, Noop):
            return None
        if isinstance(intent, (Say, MentionOrCommand)):
            if self.sessions.has_provider:
                return await self.sessions.request_reply(scope_id, intent.text, username)
            return self.generator.generate(intent.text)
        raise TypeError(f"unhandled intent: {intent!r}")

    async def close(self) -> None:
        await self.sessions.close()
