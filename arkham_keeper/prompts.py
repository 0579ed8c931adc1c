"""Keeper prompt assembly.

build_turn_messages() produces the chat-completion message list for one turn:

    1. system: Keeper persona + cycle rules + reply format
    2. system: rolling context block (scenario, investigator, summary,
       language, recent log, transcript), rendered from a Handlebars template
    3. chat history, role-mapped, optionally limited
    4. user: the new player utterance (unless already the last history entry)

Everything here is pure: inputs are never mutated and nothing is cached
except compiled templates.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

import pybars

from arkham_keeper.models import ChatMessage, Investigator, LogEntry, Scenario, Session

PromptMessage = dict[str, str]  # {"role": "system"|"user"|"assistant", "content": ...}

SUMMARY_PLACEHOLDER = "(no summary yet)"
MAX_LOG_ENTRIES = 5

_ROLE_MAP: dict[str, str] = {
    "keeper": "assistant",
    "player": "user",
    "system": "system",
}

_LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "ru": "Russian",
}


DEFAULT_KEEPER_SYSTEM_PROMPT = """\
You are the Keeper of Arcane Lore for a Call of Cthulhu scenario.
You run the world, the NPCs, the pacing, the threats, and the unfolding mystery.
You speak to the Investigator, inside the fiction, unless the player explicitly asks for meta or rules.

Your responsibilities:
- Describe scenes from the Investigator's point of view.
- Present meaningful choices.
- Trigger rolls when outcomes matter.
- Track consequences, sanity risk, danger, clues, and world-state changes.
- Maintain narrative consistency, internal logic, and tone.
- Keep the world grounded in the chosen era and tone.

Your limitations:
- No out-of-character system talk unless the player uses a meta command.
- No memory bleed from other scenarios.
- Never reveal mythos truths the Investigator has not earned.
- Never break genre logic."""

DEFAULT_KEEPER_CYCLE_RULES = """\
Follow this cycle for every turn:

1. SCENE ESTABLISHMENT
- Describe the environment from the Investigator's point of view only.
- Use sensory detail: sight, sound, touch, atmosphere, and emotion.
- Only reveal what the Investigator could reasonably perceive or infer.

2. PRESENT MEANINGFUL CHOICES
- Present 2-4 distinct, logical actions the Investigator could take.
- Each option must be consequential and hint at the stakes.
- Always end with an option to propose their own action.

3. ACTION SELECTION
- When the player picks a listed option, accept it and continue.
- When the player proposes a custom action, restate the intent and the risk
  and ask for confirmation before resolving it.

4. RESOLUTION & ROLLS
- Roll internally only when the outcome is uncertain and failure matters.
- If no roll is needed, resolve purely through fiction.

5. OUTCOME NARRATION
- Describe the immediate outcome from the Investigator's perspective.
- Show changes in the environment, new clues, danger, or psychological impact.
- Then return to step 1 with the new state of the scene.

Stay in-fiction at all times unless the player explicitly asks for meta or rules."""

DEFAULT_KEEPER_REPLY_FORMAT = """\
REPLY FORMAT (USE THIS EXACTLY)

Reply with a single minified JSON object and nothing else:
{"narration":"<in-fiction narration from the Investigator's point of view>","choices":["<option 1>","<option 2>","<option 3>","<option 4>","Propose your own action. Describe what you do in your own words."]}

No Markdown code fences, no text before or after the JSON object."""

CONTEXT_TEMPLATE = """\
SCENARIO: {{{scenario.name}}}
Premise: {{{scenario.premise}}}{{{scenario.details}}}

INVESTIGATOR: {{{investigator.name}}}, {{{investigator.occupation}}}
Background: {{{investigator.background}}}
Personality: {{{investigator.traits}}}
Skills: {{{investigator.skills}}}

SESSION SUMMARY:
{{{summary}}}

LANGUAGE: {{{language}}}

RECENT LOG (newest first):
{{{recent_log}}}

TRANSCRIPT:
{{{transcript}}}"""


# ---------------------------------------------------------------------------
# Handlebars rendering
# ---------------------------------------------------------------------------

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ---------------------------------------------------------------------------
# Context block
# ---------------------------------------------------------------------------

def build_keeper_instructions(
    keeper_system_prompt: str | None = None,
    keeper_cycle_rules: str | None = None,
    keeper_reply_format: str | None = None,
) -> str:
    """Persona + cycle rules + reply format; blank fragments use the defaults."""
    persona = (keeper_system_prompt or "").strip() or DEFAULT_KEEPER_SYSTEM_PROMPT
    rules = (keeper_cycle_rules or "").strip() or DEFAULT_KEEPER_CYCLE_RULES
    reply_format = (keeper_reply_format or "").strip() or DEFAULT_KEEPER_REPLY_FORMAT
    return f"{persona.strip()}\n\n{rules.strip()}\n\n{reply_format.strip()}"


def language_directive(language: str) -> str:
    name = _LANGUAGE_NAMES.get(language)
    if name is None:
        return f"Reply in the language with tag '{language}'."
    return f"Reply in {name}, including narration and choices."


def format_log(entries: Sequence[LogEntry], limit: int = MAX_LOG_ENTRIES) -> str:
    """Most recent entries first, one "- title: details" line each."""
    if limit <= 0 or not entries:
        return "(none)"
    lines: list[str] = []
    for entry in reversed(entries[-limit:]):
        if entry.details:
            lines.append(f"- {entry.title}: {entry.details}")
        else:
            lines.append(f"- {entry.title}")
    return "\n".join(lines)


def format_transcript(messages: Sequence[ChatMessage]) -> str:
    if not messages:
        return "(no messages yet)"
    return "\n".join(f"{m.role.upper()}: {m.content}" for m in messages)


def _scenario_details(scenario: Scenario) -> str:
    meta = scenario.meta
    if meta is None:
        return ""
    parts = []
    if meta.era:
        parts.append(f"Era: {meta.era}")
    if meta.tone:
        parts.append(f"Tone: {meta.tone}")
    if meta.setting_description:
        parts.append(f"Setting: {meta.setting_description}")
    if not parts:
        return ""
    return "\n" + "\n".join(parts)


def build_context(
    session: Session,
    scenario: Scenario,
    investigator: Investigator,
    prior_messages: Sequence[ChatMessage],
) -> dict[str, Any]:
    """Assemble template variables for the context block."""
    return {
        "scenario": {
            "name": scenario.name,
            "premise": scenario.premise,
            "details": _scenario_details(scenario),
        },
        "investigator": {
            "name": investigator.name,
            "occupation": investigator.occupation,
            "background": investigator.background,
            "traits": ", ".join(investigator.personality_traits),
            "skills": investigator.skills_summary,
        },
        "summary": session.state_summary.strip() or SUMMARY_PLACEHOLDER,
        "language": language_directive(session.language),
        "recent_log": format_log(session.log),
        "transcript": format_transcript(prior_messages),
    }


def build_context_block(
    session: Session,
    scenario: Scenario,
    investigator: Investigator,
    prior_messages: Sequence[ChatMessage],
) -> str:
    ctx = build_context(session, scenario, investigator, prior_messages)
    return render_prompt(CONTEXT_TEMPLATE, ctx)


# ---------------------------------------------------------------------------
# Message list
# ---------------------------------------------------------------------------

def build_turn_messages(
    session: Session,
    scenario: Scenario,
    investigator: Investigator,
    prior_messages: Sequence[ChatMessage],
    new_player_utterance: str,
    keeper_system_prompt: str | None = None,
    keeper_cycle_rules: str | None = None,
    keeper_reply_format: str | None = None,
    history_limit: int | None = None,
) -> list[PromptMessage]:
    """Build the ordered chat-completion messages for one Keeper turn."""
    messages: list[PromptMessage] = [
        {
            "role": "system",
            "content": build_keeper_instructions(
                keeper_system_prompt, keeper_cycle_rules, keeper_reply_format
            ),
        },
        {
            "role": "system",
            "content": build_context_block(session, scenario, investigator, prior_messages),
        },
    ]

    history = list(prior_messages)
    if history_limit is not None:
        history = history[-history_limit:] if history_limit > 0 else []
    messages.extend(
        {"role": _ROLE_MAP[m.role], "content": m.content} for m in history
    )

    # The caller may already have appended the player's message to the chat
    last = history[-1] if history else None
    already_sent = (
        last is not None
        and last.role == "player"
        and last.content.strip() == new_player_utterance.strip()
    )
    if not already_sent:
        messages.append({"role": "user", "content": new_player_utterance})

    return messages
