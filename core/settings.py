"""Process configuration read from the environment (and ``.env`` via main)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .sessions import SESSION_MODE_SCOPE, SESSION_MODES

log = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4.1-mini"
DEFAULT_PORT = 3000


@dataclass(frozen=True)
class Settings:
    bot_token: Optional[str]
    openai_api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    command_prefix: str = "!"
    port: int = DEFAULT_PORT
    guild_id: Optional[int] = None
    session_mode: str = SESSION_MODE_SCOPE
    persona_path: Optional[Path] = None
    max_retries: int = 3
    retry_delay: float = 2.0
    max_history: int = 50
    log_level: str = "INFO"


def _int(raw: Optional[str], default: Optional[int]) -> Optional[int]:
    raw = (raw or "").strip()
    return int(raw) if raw.isdigit() else default


def _float(raw: Optional[str], default: float) -> float:
    try:
        return float(raw) if raw else default
    except ValueError:
        log.warning("ignoring invalid number %r", raw)
        return default


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ
    session_mode = (env.get("SESSION_MODE") or SESSION_MODE_SCOPE).strip().lower()
    if session_mode not in SESSION_MODES:
        log.warning("unknown SESSION_MODE %r, using %s", session_mode, SESSION_MODE_SCOPE)
        session_mode = SESSION_MODE_SCOPE
    persona_path = (env.get("PERSONA_PATH") or "").strip()
    return Settings(
        bot_token=env.get("BOT_TOKEN") or None,
        openai_api_key=env.get("OPENAI_API_KEY") or None,
        model=env.get("MODEL") or DEFAULT_MODEL,
        command_prefix=env.get("COMMAND_PREFIX") or "!",
        port=_int(env.get("PORT"), DEFAULT_PORT),
        guild_id=_int(env.get("DISCORD_GUILD_ID"), None),
        session_mode=session_mode,
        persona_path=Path(persona_path) if persona_path else None,
        max_retries=_int(env.get("LLM_MAX_RETRIES"), 3),
        retry_delay=_float(env.get("LLM_RETRY_DELAY"), 2.0),
        max_history=_int(env.get("LLM_MAX_HISTORY"), 50),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
