"""Core domain models.

Scenario and Investigator records are owned by the setup flows and are
read-only here. Session is the unit of play; the turn orchestrator writes its
chat. Pydantic is used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

KeeperLanguage = Literal["en", "ru"]

ScenarioSource = Literal["predefined", "custom"]

SessionStatus = Literal["setup", "active", "completed", "abandoned"]

ChatRole = Literal["player", "keeper", "system"]

LogEntryType = Literal[
    "session_start",
    "note",
    "keeper_summary",
    "clue_found",
    "important_choice",
    "roll",
]


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ScenarioMeta(BaseModel):
    era: str | None = None
    tone: str | None = None
    setting_description: str | None = None


class Scenario(BaseModel):
    """Narrative seed for a one-shot."""

    id: str
    name: str
    premise: str
    short_description: str = ""
    source: ScenarioSource = "custom"
    tags: list[str] = Field(default_factory=list)
    meta: ScenarioMeta | None = None
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)


class Investigator(BaseModel):
    """The player character sheet."""

    id: str
    name: str
    occupation: str
    background: str = ""
    personality_traits: list[str] = Field(default_factory=list)
    skills_summary: str = ""
    player_notes: str = ""
    language: KeeperLanguage = "en"
    avatar_url: str | None = None
    scenario_id: str | None = None
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)


class KeeperTurnParsed(BaseModel):
    """Structured view of one Keeper reply."""

    narration: str
    choices: list[str] = Field(default_factory=list)


class ChatMessageMeta(BaseModel):
    is_setup_phase: bool | None = None
    is_system_note: bool | None = None
    was_cancelled: bool | None = None
    is_fallback: bool | None = None
    parsed_keeper_turn: KeeperTurnParsed | None = None


class ChatMessage(BaseModel):
    """A single entry in a session's chat.

    Committed messages are never edited. A rewrite is a new message whose
    edited_from_message_id points at the original.
    """

    id: str
    session_id: str
    role: ChatRole
    content: str
    created_at: str = Field(default_factory=utc_now)
    edited_from_message_id: str | None = None
    meta: ChatMessageMeta | None = None


class LogEntry(BaseModel):
    """Append-only audit trail entry (clue found, roll, ...)."""

    id: str
    session_id: str
    type: LogEntryType
    title: str
    details: str | None = None
    related_message_id: str | None = None
    created_at: str = Field(default_factory=utc_now)


class Session(BaseModel):
    """One play-through of a scenario by one investigator."""

    id: str
    title: str
    scenario_id: str
    investigator_id: str
    language: KeeperLanguage = "en"
    status: SessionStatus = "setup"
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)
    last_opened_at: str = Field(default_factory=utc_now)
    state_summary: str = ""
    state_flags: dict[str, Any] | None = None
    chat: list[ChatMessage] = Field(default_factory=list)
    log: list[LogEntry] = Field(default_factory=list)
