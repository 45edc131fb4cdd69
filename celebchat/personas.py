"""Static persona registry and per-persona model preferences.

The registry is built once from the built-in table (or a YAML override, see
``config.load_personas_config``) and exposed through read-only mappings.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from .config import load_personas_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Persona:
    id: str
    display_name: str
    avatar: str

    def as_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.display_name, "avatar": self.avatar}


BUILTIN_PERSONAS: dict[str, dict[str, Any]] = {
    "einstein": {
        "name": "Albert Einstein",
        "avatar": "/images/einstein.jpg",
        "models": ["llama3", "mistral", "gemma"],
    },
    "frida": {
        "name": "Frida Kahlo",
        "avatar": "/images/frida.jpg",
        "models": ["mistral", "llama3", "gemma"],
    },
    "leonardo": {
        "name": "Leonardo da Vinci",
        "avatar": "/images/leonardo.jpg",
        "models": ["gemma", "mistral", "llama3"],
    },
    "curie": {
        "name": "Marie Curie",
        "avatar": "/images/curie.jpg",
        "models": ["llama3", "mistral", "gemma"],
    },
}


@dataclass(frozen=True)
class PersonaRegistry:
    personas: Mapping[str, Persona]
    preferences: Mapping[str, tuple[str, ...]]

    def get(self, persona_id: str) -> Persona | None:
        return self.personas.get(persona_id)

    def __contains__(self, persona_id: object) -> bool:
        return persona_id in self.personas

    def __iter__(self):
        return iter(self.personas.values())

    def __len__(self) -> int:
        return len(self.personas)


def build_registry(entries: Mapping[str, Mapping[str, Any]]) -> PersonaRegistry:
    """Validate raw persona entries and freeze them into a registry."""
    if not isinstance(entries, Mapping):
        raise ValueError("Persona config 'personas' must be a mapping")
    personas: dict[str, Persona] = {}
    preferences: dict[str, tuple[str, ...]] = {}
    for persona_id, entry in entries.items():
        if not isinstance(entry, Mapping):
            raise ValueError(f"Persona '{persona_id}' must be a mapping")
        name = entry.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"Persona '{persona_id}' is missing a display name")
        models = entry.get("models") or []
        if not isinstance(models, (list, tuple)):
            raise ValueError(f"Persona '{persona_id}' models must be a list")
        personas[persona_id] = Persona(
            id=str(persona_id),
            display_name=name.strip(),
            avatar=str(entry.get("avatar") or ""),
        )
        preferences[persona_id] = tuple(str(m).strip() for m in models if str(m).strip())
    return PersonaRegistry(
        personas=MappingProxyType(personas),
        preferences=MappingProxyType(preferences),
    )


@functools.lru_cache(maxsize=1)
def get_registry() -> PersonaRegistry:
    config = load_personas_config()
    entries = config.get("personas")
    if entries:
        registry = build_registry(entries)
        logger.info("Loaded %d personas from config", len(registry))
        return registry
    return build_registry(BUILTIN_PERSONAS)
