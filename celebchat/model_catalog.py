"""Persona → base model resolution against the backend's loaded models."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .config import settings
from .personas import get_registry


def base_model_name(model_name: str) -> str:
    """``"llama3:8b"`` → ``"llama3"``."""
    return str(model_name).split(":", 1)[0].lower()


def normalize_models(available_model_names: Iterable[str] | None) -> set[str]:
    return {base_model_name(name) for name in (available_model_names or ()) if name}


def pick_model(preferences: Iterable[str], available: set[str], default: str) -> str:
    for candidate in preferences:
        if candidate.lower() in available:
            return candidate
    return default


def resolve_models(
    available_model_names: Iterable[str] | None,
    *,
    preferences: Mapping[str, Iterable[str]] | None = None,
    default: str | None = None,
) -> dict[str, str]:
    """Map every persona to its best available base model.

    Never fails: with no models loaded every persona resolves to ``default``.
    """
    if preferences is None:
        preferences = get_registry().preferences
    if default is None:
        default = settings.default_model
    available = normalize_models(available_model_names)
    return {
        persona_id: pick_model(prefs, available, default)
        for persona_id, prefs in preferences.items()
    }
