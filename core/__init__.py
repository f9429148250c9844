from .persona import Persona, PersonaReplyGenerator, load_persona
from .provider import GenerationConfig, OpenAISessionFactory
from .responder import Responder
from .sessions import ProviderSessionManager, RetryPolicy
from .settings import Settings

__all__ = [
    "OpenAISessionFactory",
    "Persona",
    "PersonaReplyGenerator",
    "ProviderSessionManager",
    "Responder",
    "RetryPolicy",
    "Settings",
    "build_responder",
    "load_persona",
]


def build_responder(settings: Settings, rng=None) -> Responder:
    """Wire the persona, optional model sessions and dispatcher from settings."""

    persona = load_persona(settings.persona_path)
    generator = PersonaReplyGenerator(persona, rng)
    factory = None
    if settings.openai_api_key:
        factory = OpenAISessionFactory(
            api_key=settings.openai_api_key,
            model=settings.model,
            persona=persona,
            generation=GenerationConfig(max_history=settings.max_history),
        )
    sessions = ProviderSessionManager(
        generator.generate,
        session_factory=factory,
        retry_policy=RetryPolicy(max_retries=settings.max_retries, delay=settings.retry_delay),
        session_mode=settings.session_mode,
    )
    return Responder(generator, sessions, prefix=settings.command_prefix)
