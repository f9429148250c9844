"""Persona definition and the offline, rule-based reply generator."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Sequence, Tuple

import yaml

log = logging.getLogger(__name__)

DEFAULT_PERSONA_PATH = Path(__file__).with_name("persona_config.yaml")

# chance of tacking an ending onto a templated reply
ENDING_CHANCE = 0.35
TEXT_PLACEHOLDER = "{text}"


class PersonaError(ValueError):
    """Raised when a persona file cannot be turned into a usable Persona."""


class RandomSource(Protocol):
    def choice(self, seq: Sequence[str]) -> str: ...

    def random(self) -> float: ...


@dataclass(frozen=True)
class Persona:
    name: str
    short: str
    instruction: str
    acknowledgement: str
    idle: Tuple[str, ...]
    templates: Tuple[str, ...]
    endings: Tuple[str, ...]


def _lines(raw: Dict[str, Any], key: str) -> Tuple[str, ...]:
    value = raw.get(key)
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(
        " ".join(str(item).split())
        for item in value
        if item is not None and str(item).strip()
    )


def _text(raw: Dict[str, Any], key: str) -> str:
    value = raw.get(key)
    if value is None:
        return ""
    return " ".join(str(value).split())


def load_persona(path: Optional[Path] = None) -> Persona:
    """Read a persona YAML file and validate it.

    The file must define ``name`` plus non-empty ``idle``, ``templates`` and
    ``endings`` lists; every template has to embed the ``{text}`` placeholder.
    """

    path = Path(path) if path else DEFAULT_PERSONA_PATH
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise PersonaError(f"failed to read persona config {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise PersonaError(f"persona config {path} is not a mapping")

    persona = Persona(
        name=_text(raw, "name"),
        short=_text(raw, "short"),
        instruction=_text(raw, "instruction"),
        acknowledgement=_text(raw, "acknowledgement"),
        idle=_lines(raw, "idle"),
        templates=_lines(raw, "templates"),
        endings=_lines(raw, "endings"),
    )
    if not persona.name:
        raise PersonaError(f"persona config {path} has no name")
    for key in ("idle", "templates", "endings"):
        if not getattr(persona, key):
            raise PersonaError(f"persona config {path} has no {key}")
    missing = [t for t in persona.templates if TEXT_PLACEHOLDER not in t]
    if missing:
        raise PersonaError(f"templates without {TEXT_PLACEHOLDER}: {missing}")
    log.info("persona loaded: %s (%s)", persona.name, path)
    return persona


class PersonaReplyGenerator:
    """Stateless stand-in for the model: wraps user text in the persona's voice."""

    def __init__(self, persona: Persona, rng: Optional[RandomSource] = None):
        self.persona = persona
        self.rng = rng or random.Random()

    def generate(self, text: Optional[str]) -> str:
        trimmed = (text or "").strip()
        pick = self.rng.choice
        if not trimmed:
            return f"{self.persona.name}: {pick(self.persona.idle)} {pick(self.persona.endings)}"

        # plain replace, not str.format: user text may contain braces
        templated = pick(self.persona.templates).replace(TEXT_PLACEHOLDER, trimmed)
        out = f"{self.persona.name}: {templated}"
        if self.rng.random() < ENDING_CHANCE:
            out += f" {pick(self.persona.endings)}"
        return out

    __call__ = generate
