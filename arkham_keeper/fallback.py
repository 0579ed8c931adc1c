"""Deterministic Keeper turns for when the model cannot provide one.

The fallback is written in the legacy NARRATION:/CHOICES: layout so that it
goes through parse_reply() exactly like a real reply.
"""

from __future__ import annotations

import re

from arkham_keeper.parser import parse_choices, parse_reply

FALLBACK_CHOICES: tuple[str, ...] = (
    "Survey the immediate area for threats or hidden clues.",
    "Call out cautiously to test who might answer.",
    "Advance toward the most striking feature nearby.",
    "Pause to steady yourself and recall what you know.",
)
OWN_ACTION_CHOICE = "Propose your own action. Describe what you do in your own words."

# Provider status text, e.g. ": OPENROUTER PROCESSING", as a whole SSE comment
# line or trailing an ordinary line
_NOISE_RE = re.compile(
    r"(?:^[ \t]*:[ \t]*)?openrouter\s*proc\w*[^\n]*\n?",
    re.IGNORECASE | re.MULTILINE,
)
_CHOICES_LABEL_RE = re.compile(r"CHOICES:", re.IGNORECASE)


def sanitize_keeper_content(text: str) -> str:
    """Remove provider status lines from accumulated reply text."""
    return _NOISE_RE.sub("", text)


def _without_choices_block(narration: str) -> str:
    """Cut a trailing CHOICES: block that would still yield numbered choices."""
    label = _CHOICES_LABEL_RE.search(narration)
    if label and parse_choices(narration[label.end():]):
        return narration[:label.start()].rstrip()
    return narration


def build_fallback_turn(narration_seed: str, silent_fallback_text: str) -> str:
    """Return a legacy-format reply with the seed as narration and five choices."""
    # A half-finished reply keeps only its narration; its own choices are dropped
    narration = (
        _without_choices_block(parse_reply(narration_seed).narration)
        or silent_fallback_text
    )
    choice_lines = "\n".join(
        f"{i}. {choice}"
        for i, choice in enumerate([*FALLBACK_CHOICES, OWN_ACTION_CHOICE], start=1)
    )
    return f"NARRATION:\n{narration}\n\nCHOICES:\n{choice_lines}"
