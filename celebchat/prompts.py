"""Persona prompt templates and prompt assembly."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Union

SYSTEM_PROMPT = (
    "You are role-playing a historical figure in a friendly chat. "
    "Stay in character and answer in the language the user writes in."
)

GUARDRAILS = (
    "Do not claim to be a real living person. Do not invent private details. "
    "If asked about events after your lifetime, say you cannot know them."
)


@dataclass(frozen=True)
class PromptParts:
    text: str
    system: str | None = None
    persona: str | None = None
    guardrails: str | None = None

    def diagnostics(self) -> list[tuple[str, str]]:
        """Populated parts in display order, ``text`` last."""
        parts = [
            ("system", self.system),
            ("persona", self.persona),
            ("guardrails", self.guardrails),
            ("prompt", self.text),
        ]
        return [(label, value) for label, value in parts if value]


@dataclass(frozen=True)
class PlainPrompt:
    text: str


@dataclass(frozen=True)
class StructuredPrompt:
    value: Any


TemplateOutput = Union[PlainPrompt, StructuredPrompt]
Template = Callable[[str], Any]


def classify_template_output(value: Any) -> TemplateOutput:
    if isinstance(value, str):
        return PlainPrompt(value)
    return StructuredPrompt(value)


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def to_prompt_parts(output: TemplateOutput) -> PromptParts:
    if isinstance(output, PlainPrompt):
        return PromptParts(text=output.text)

    value = output.value
    fields = value if isinstance(value, Mapping) else {}
    text = fields.get("text")
    if not isinstance(text, str):
        text = json.dumps(value, indent=2, ensure_ascii=False, default=str)
    return PromptParts(
        text=text,
        system=_optional_str(fields.get("system")),
        persona=_optional_str(fields.get("persona")),
        guardrails=_optional_str(fields.get("guardrails")),
    )


def _persona_template(persona: str) -> Template:
    # system and guardrails are logged only; the backend gets persona + user line
    def render(message: str) -> dict[str, str]:
        text = f'\n{persona}\nUser: "{message}"\n'
        return {
            "system": SYSTEM_PROMPT,
            "persona": persona,
            "guardrails": GUARDRAILS,
            "text": text,
        }

    return render


# Keyed by persona display name.
PROMPT_TEMPLATES: dict[str, Template] = {
    "Albert Einstein": _persona_template(
        "You are Albert Einstein, theoretical physicist. You speak with precision, "
        "curiosity and a touch of humor. Answer as you would in a letter or an "
        "interview, using scientific analogies where you can."
    ),
    "Frida Kahlo": _persona_template(
        "You are Frida Kahlo, Mexican painter. Your voice is poetic, emotional and "
        "deeply introspective. Answer with sensitivity, with references to your "
        "art, your pain and your love for Mexico."
    ),
    "Leonardo da Vinci": _persona_template(
        "You are Leonardo da Vinci, Renaissance polymath. You speak with wisdom and "
        "a many-sided curiosity. Answer as if writing in your notebook, with "
        "metaphors and observations of the natural world."
    ),
    "Marie Curie": _persona_template(
        "You are Marie Curie, pioneering scientist. Your tone is sober, rigorous "
        "and humble. Answer with scientific clarity, but also with humanity and "
        "respect for knowledge."
    ),
}


def generic_prompt(display_name: str, message: str) -> str:
    return f"respond as if you were {display_name}. The user says: {message}"


def build_prompt(
    persona_id: str,
    display_name: str,
    message: str,
    *,
    templates: Mapping[str, Template] | None = None,
) -> PromptParts:
    """Build the prompt for ``display_name``, falling back to a generic one."""
    if templates is None:
        templates = PROMPT_TEMPLATES
    template = templates.get(display_name)
    if template is None:
        return PromptParts(text=generic_prompt(display_name or persona_id, message))
    return to_prompt_parts(classify_template_output(template(message)))


def shorten(text: str, limit: int = 1500) -> str:
    if not text or len(text) <= limit:
        return text
    return f"{text[:limit]}\n...[{len(text) - limit} more chars]"
