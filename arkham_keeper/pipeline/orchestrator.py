"""Turn orchestrator: runs one Keeper turn end-to-end.

Turn flow:
  1. Append the player's message to the session (skipped for the automatic
     introduction, which only runs on an empty chat).
  2. Without an API key, commit a fallback turn straight away.
  3. Build the prompt and open the completion stream        (requesting)
  4. For every token, replace the in-flight keeper message  (streaming)
     with the sanitized text so far. Same message id throughout.
  5. Parse the final text once and cache it in the message  (finalizing)
  6. Commit the message and refresh last_opened_at          (committed)

Any failure in 3–4 commits a fallback turn built from the partial text
instead (error_recovered → committed). Only one turn may be in flight per
session; a second submission is rejected, not queued.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Literal

from pydantic import BaseModel

from arkham_keeper.config import KeeperSettings, LLMSettings
from arkham_keeper.fallback import build_fallback_turn, sanitize_keeper_content
from arkham_keeper.llm import ChatCompletionClient, CompletionClient
from arkham_keeper.models import (
    ChatMessage,
    ChatMessageMeta,
    Investigator,
    KeeperTurnParsed,
    Scenario,
    Session,
    new_id,
    utc_now,
)
from arkham_keeper.parser import parse_reply
from arkham_keeper.phrases import phrase
from arkham_keeper.prompts import build_turn_messages
from arkham_keeper.storage import RecordNotFoundError, SessionStore
from arkham_keeper.stream import iter_tokens

logger = logging.getLogger(__name__)

TurnState = Literal[
    "idle",
    "requesting",
    "streaming",
    "finalizing",
    "committed",
    "error_recovered",
]

ClientFactory = Callable[[LLMSettings], CompletionClient]


class TurnResult(BaseModel):
    """The committed outcome of one Keeper turn."""

    session: Session
    message: ChatMessage
    parsed: KeeperTurnParsed
    fallback: bool = False
    cancelled: bool = False


class KeeperTurnOrchestrator:
    """Drives Keeper turns against an injected session store.

    Args:
        store:          Session/scenario/investigator repository.
        settings:       KeeperSettings, or a callable returning the current
                        settings (read once per turn).
        client_factory: Builds the completion client for a turn. Defaults to
                        ChatCompletionClient.from_settings.
    """

    def __init__(
        self,
        store: SessionStore,
        settings: KeeperSettings | Callable[[], KeeperSettings],
        client_factory: ClientFactory = ChatCompletionClient.from_settings,
    ) -> None:
        self._store = store
        self._settings = settings
        self._client_factory = client_factory
        self._in_flight: set[str] = set()
        self._cancelled: set[str] = set()
        self._intro_started: set[str] = set()
        self._states: dict[str, TurnState] = {}

    # ------------------------------------------------------------------
    # Per-session state
    # ------------------------------------------------------------------

    def is_streaming(self, session_id: str) -> bool:
        return session_id in self._in_flight

    def turn_state(self, session_id: str) -> TurnState:
        return self._states.get(session_id, "idle")

    def cancel(self, session_id: str) -> bool:
        """Stop committing tokens for the in-flight turn. False if none is running."""
        if session_id not in self._in_flight:
            return False
        self._cancelled.add(session_id)
        return True

    def reset_introduction(self, session_id: str) -> None:
        """Allow the automatic introduction to run again for session_id."""
        self._intro_started.discard(session_id)

    def _current_settings(self) -> KeeperSettings:
        if isinstance(self._settings, KeeperSettings):
            return self._settings
        return self._settings()

    def _load(self, session_id: str) -> tuple[Session, Scenario, Investigator]:
        session = self._store.get_session(session_id)
        if session is None:
            raise RecordNotFoundError(f"Session {session_id!r} not found")
        scenario = self._store.get_scenario(session.scenario_id)
        if scenario is None:
            raise RecordNotFoundError(f"Scenario {session.scenario_id!r} not found")
        investigator = self._store.get_investigator(session.investigator_id)
        if investigator is None:
            raise RecordNotFoundError(
                f"Investigator {session.investigator_id!r} not found"
            )
        return session, scenario, investigator

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run_turn(
        self,
        session_id: str,
        utterance: str | None = None,
        *,
        edited_from: str | None = None,
    ) -> TurnResult | None:
        """Run one Keeper turn and return it once committed.

        utterance=None requests the automatic introduction. Returns None when
        the turn is rejected: another turn is in flight, the utterance is
        blank, or the introduction does not apply.
        """
        if session_id in self._in_flight:
            logger.warning("Keeper turn already in flight for session %s, rejected", session_id)
            return None

        session, scenario, investigator = self._load(session_id)
        now = utc_now()
        base_messages = list(session.chat)

        if utterance is None:
            if base_messages or session_id in self._intro_started:
                return None
            self._intro_started.add(session_id)
            prompt_text = phrase(
                session.language, "intro_prompt",
                investigator=investigator.name, scenario=scenario.name,
            )
            fallback_narration = phrase(session.language, "intro_fallback")
        else:
            prompt_text = utterance.strip()
            if not prompt_text:
                return None
            if edited_from:
                base_messages.append(ChatMessage(
                    id=new_id(), session_id=session.id, role="system",
                    content=phrase(session.language, "player_rewrote_action"),
                    created_at=now, meta=ChatMessageMeta(is_system_note=True),
                ))
            base_messages.append(ChatMessage(
                id=new_id(), session_id=session.id, role="player",
                content=prompt_text, created_at=now,
                edited_from_message_id=edited_from,
            ))
            session = self._store.upsert_session(
                session.model_copy(update={"chat": base_messages, "updated_at": now})
            )
            fallback_narration = phrase(session.language, "message_fallback")

        return await self._stream_keeper_turn(
            session, scenario, investigator, prompt_text, base_messages, fallback_narration
        )

    async def start_introduction(self, session_id: str) -> TurnResult | None:
        return await self.run_turn(session_id)

    async def choose(self, session_id: str, index: int, text: str) -> TurnResult | None:
        """Submit one of the listed choices as the player's action."""
        session = self._store.get_session(session_id)
        if session is None:
            raise RecordNotFoundError(f"Session {session_id!r} not found")
        return await self.run_turn(
            session_id, phrase(session.language, "choice", index=index, text=text)
        )

    async def rewrite_last_action(self, session_id: str, utterance: str) -> TurnResult | None:
        """Resubmit the last player action; history keeps the original."""
        session = self._store.get_session(session_id)
        if session is None:
            raise RecordNotFoundError(f"Session {session_id!r} not found")
        last_player = next((m for m in reversed(session.chat) if m.role == "player"), None)
        return await self.run_turn(
            session_id, utterance,
            edited_from=last_player.id if last_player else None,
        )

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def _stream_keeper_turn(
        self,
        session: Session,
        scenario: Scenario,
        investigator: Investigator,
        prompt_text: str,
        base_messages: list[ChatMessage],
        fallback_narration: str,
    ) -> TurnResult:
        settings = self._current_settings()
        silent_fallback = phrase(session.language, "silent_fallback")
        keeper_message = ChatMessage(
            id=new_id(), session_id=session.id, role="keeper",
            content="", created_at=utc_now(),
        )

        self._in_flight.add(session.id)
        self._cancelled.discard(session.id)
        raw_text = ""
        visible_text = ""
        fallback = False
        cancelled = False

        try:
            if not settings.llm.api_key:
                content = build_fallback_turn(fallback_narration, silent_fallback)
                fallback = True
            else:
                self._states[session.id] = "requesting"
                messages = build_turn_messages(
                    session, scenario, investigator, base_messages, prompt_text,
                    keeper_system_prompt=settings.keeper_system_prompt,
                    keeper_cycle_rules=settings.keeper_cycle_rules,
                    keeper_reply_format=settings.keeper_reply_format,
                    history_limit=settings.history_limit,
                )
                client = self._client_factory(settings.llm)
                chunks = client.stream(messages)
                tokens = iter_tokens(chunks)
                try:
                    async for token in tokens:
                        if session.id in self._cancelled:
                            cancelled = True
                            break
                        self._states[session.id] = "streaming"
                        raw_text += token
                        visible_text = sanitize_keeper_content(raw_text)
                        self._store.upsert_session(session.model_copy(update={
                            "chat": [
                                *base_messages,
                                keeper_message.model_copy(update={"content": visible_text}),
                            ],
                        }))
                finally:
                    await tokens.aclose()
                    await chunks.aclose()

                self._states[session.id] = "finalizing"
                content = visible_text
                if not content.strip() or (cancelled and not parse_reply(content).choices):
                    content = build_fallback_turn(content, silent_fallback)
                    fallback = True
        except Exception:
            logger.exception("Keeper turn failed for session %s", session.id)
            self._states[session.id] = "error_recovered"
            content = build_fallback_turn(sanitize_keeper_content(raw_text), silent_fallback)
            fallback = True
        finally:
            self._in_flight.discard(session.id)
            self._cancelled.discard(session.id)

        parsed = parse_reply(content)
        now = utc_now()
        final_message = keeper_message.model_copy(update={
            "content": content,
            "meta": ChatMessageMeta(
                parsed_keeper_turn=parsed,
                is_fallback=fallback or None,
                was_cancelled=cancelled or None,
            ),
        })
        committed = self._store.upsert_session(session.model_copy(update={
            "chat": [*base_messages, final_message],
            "last_opened_at": now,
            "updated_at": now,
        }))
        self._states[session.id] = "committed"
        logger.info(
            "Keeper turn committed session=%s fallback=%s cancelled=%s",
            session.id, fallback, cancelled,
        )
        return TurnResult(
            session=committed,
            message=final_message,
            parsed=parsed,
            fallback=fallback,
            cancelled=cancelled,
        )
