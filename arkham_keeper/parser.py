"""Keeper reply parsing into narration + choices.

Two reply dialects are accepted, tried in order:

    json      {"narration": "...", "choices": ["...", "..."]}
              possibly fenced in ```json or wrapped in stray prose
    sections  NARRATION:
              ...
              CHOICES:
              1. ...
              2. ...

Anything else degrades to "plain": the whole trimmed text is the narration.
parse_reply() never raises.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Literal

from pydantic import BaseModel

from arkham_keeper.models import KeeperTurnParsed

logger = logging.getLogger(__name__)

ReplyDialect = Literal["json", "sections", "plain"]

_FENCE_RE = re.compile(r"```[\w-]*")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_NARRATION_RE = re.compile(r"NARRATION:\s*([\s\S]*?)\n\s*CHOICES:", re.IGNORECASE)
_CHOICES_RE = re.compile(r"CHOICES:\s*([\s\S]*)$", re.IGNORECASE)
_CHOICE_LINE_RE = re.compile(r"^\s*\d+\.\s*(.+)$")


class ParsedReply(BaseModel):
    """A parsed turn tagged with the dialect that produced it."""

    dialect: ReplyDialect
    turn: KeeperTurnParsed


def _parse_json_reply(raw: str) -> KeeperTurnParsed | None:
    """Structured attempt. None when there is no usable narration."""
    cleaned = _FENCE_RE.sub("", raw)
    match = _OBJECT_RE.search(cleaned)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.debug("Keeper reply is not valid JSON: %s", e)
        return None
    if not isinstance(data, dict):
        return None

    narration = data.get("narration")
    if not isinstance(narration, str) or not narration.strip():
        return None

    choices: list[str] = []
    raw_choices = data.get("choices")
    if isinstance(raw_choices, list):
        choices = [c.strip() for c in raw_choices if isinstance(c, str) and c.strip()]
    return KeeperTurnParsed(narration=narration.strip(), choices=choices)


def parse_choices(block: str) -> list[str]:
    """Numbered "N. text" lines of a CHOICES: block, in order; other lines are ignored."""
    choices: list[str] = []
    for line in block.strip().split("\n"):
        m = _CHOICE_LINE_RE.match(line)
        if m:
            choices.append(m.group(1).strip())
    return choices


def _parse_sectioned_reply(raw: str) -> ParsedReply:
    narration_match = _NARRATION_RE.search(raw)
    choices_match = _CHOICES_RE.search(raw)

    narration = narration_match.group(1).strip() if narration_match else raw.strip()
    choices = parse_choices(choices_match.group(1)) if choices_match else []

    return ParsedReply(
        dialect="sections" if narration_match else "plain",
        turn=KeeperTurnParsed(narration=narration, choices=choices),
    )


def parse_reply_detailed(raw: str) -> ParsedReply:
    """Parse a Keeper reply, reporting which dialect matched."""
    turn = _parse_json_reply(raw)
    if turn is not None:
        return ParsedReply(dialect="json", turn=turn)
    return _parse_sectioned_reply(raw)


def parse_reply(raw: str) -> KeeperTurnParsed:
    """Parse a Keeper reply into narration and choices."""
    return parse_reply_detailed(raw).turn
