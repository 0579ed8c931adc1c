"""JSON file storage.

All state is stored in flat JSON files under a configurable base directory.
There is no database or ORM; reads and writes go through plain helper
methods that load and dump JSON.

Directory layout:

    {base}/
      scenarios.json          ← list of Scenario objects
      investigators.json      ← list of Investigator objects
      settings.json           ← KeeperSettings (see config.py)
      sessions/
        {id}.json             ← one Session document, chat and log included

The turn orchestrator only depends on the SessionStore protocol, so any
object with the same four methods can stand in for Storage.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol

from arkham_keeper.config import KeeperSettings, load_config, save_config
from arkham_keeper.models import Investigator, Scenario, Session, utc_now


class RecordNotFoundError(LookupError):
    """Raised when a session, scenario or investigator id is unknown."""


class SessionStore(Protocol):
    def get_session(self, session_id: str) -> Session | None: ...

    def upsert_session(self, session: Session) -> Session: ...

    def get_scenario(self, scenario_id: str) -> Scenario | None: ...

    def get_investigator(self, investigator_id: str) -> Investigator | None: ...


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._sessions_root = base_path / "sessions"
        self._sessions_root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def sessions_dir(self) -> Path:
        return self._sessions_root

    def _session_file(self, session_id: str) -> Path:
        return self._sessions_root / f"{session_id}.json"

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text(encoding="utf-8"))

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def list_sessions(self) -> list[Session]:
        sessions = [
            Session.model_validate_json(path.read_text(encoding="utf-8"))
            for path in self._sessions_root.glob("*.json")
        ]
        return sorted(sessions, key=lambda s: s.last_opened_at, reverse=True)

    def get_session(self, session_id: str) -> Session | None:
        path = self._session_file(session_id)
        if not path.exists():
            return None
        return Session.model_validate_json(path.read_text(encoding="utf-8"))

    def upsert_session(self, session: Session) -> Session:
        """Replace the whole session document by id, refreshing updated_at."""
        stored = session.model_copy(update={"updated_at": utc_now()})
        path = self._session_file(stored.id)
        path.write_text(stored.model_dump_json(indent=2), encoding="utf-8")
        return stored

    # ------------------------------------------------------------------
    # Scenarios
    # ------------------------------------------------------------------

    def get_scenarios(self) -> list[Scenario]:
        path = self._base / "scenarios.json"
        if not path.exists():
            return []
        return [Scenario.model_validate(s) for s in self._read_json(path)]

    def get_scenario(self, scenario_id: str) -> Scenario | None:
        for scenario in self.get_scenarios():
            if scenario.id == scenario_id:
                return scenario
        return None

    def save_scenario(self, scenario: Scenario) -> None:
        """Upsert a scenario by id."""
        scenarios = self.get_scenarios()
        for i, s in enumerate(scenarios):
            if s.id == scenario.id:
                scenarios[i] = scenario
                break
        else:
            scenarios.append(scenario)
        self._write_json(
            self._base / "scenarios.json",
            [s.model_dump() for s in scenarios],
        )

    # ------------------------------------------------------------------
    # Investigators
    # ------------------------------------------------------------------

    def get_investigators(self) -> list[Investigator]:
        path = self._base / "investigators.json"
        if not path.exists():
            return []
        return [Investigator.model_validate(i) for i in self._read_json(path)]

    def get_investigator(self, investigator_id: str) -> Investigator | None:
        for investigator in self.get_investigators():
            if investigator.id == investigator_id:
                return investigator
        return None

    def save_investigator(self, investigator: Investigator) -> None:
        """Upsert an investigator by id."""
        investigators = self.get_investigators()
        for i, inv in enumerate(investigators):
            if inv.id == investigator.id:
                investigators[i] = investigator
                break
        else:
            investigators.append(investigator)
        self._write_json(
            self._base / "investigators.json",
            [i.model_dump() for i in investigators],
        )

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self) -> KeeperSettings:
        return load_config(self._base / "settings.json")

    def update_settings(self, fields: dict[str, Any]) -> KeeperSettings:
        return save_config(self._base / "settings.json", fields)
