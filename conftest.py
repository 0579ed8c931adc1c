import os
from pathlib import Path

import pytest

from arkham_keeper.models import Investigator, LogEntry, Scenario, ScenarioMeta, Session
from arkham_keeper.storage import Storage

TEST_DATA_DIR = Path("data-tests")

# backend.app builds a default app at import time; keep it out of ./data
os.environ["DATA_DIR"] = str(TEST_DATA_DIR)


@pytest.fixture(autouse=True)
def no_env_credentials(monkeypatch):
    """A developer's .env must not leak a real endpoint into tests."""
    for name in ("KEEPER_API_KEY", "KEEPER_BASE_URL", "KEEPER_MODEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def scenario() -> Scenario:
    return Scenario(
        id="edge-of-darkness",
        name="Edge of Darkness",
        premise="Deal with an old cult at a secluded farmhouse.",
        source="predefined",
        meta=ScenarioMeta(era="1920s", tone="Psychological Horror"),
    )


@pytest.fixture
def investigator() -> Investigator:
    return Investigator(
        id="harvey-walters",
        name="Harvey Walters",
        occupation="Professor",
        background="Folklorist at Miskatonic University.",
        personality_traits=["Pedantic", "Brave"],
        skills_summary="Library Use 70, Occult 50",
    )


@pytest.fixture
def session(scenario, investigator) -> Session:
    return Session(
        id="s1",
        title="Farmhouse",
        scenario_id=scenario.id,
        investigator_id=investigator.id,
        status="active",
        log=[
            LogEntry(id="l1", session_id="s1", type="session_start", title="Session started"),
        ],
    )


@pytest.fixture
def storage(tmp_path, scenario, investigator, session) -> Storage:
    """Storage seeded with one scenario, one investigator and an empty session."""
    store = Storage(tmp_path)
    store.save_scenario(scenario)
    store.save_investigator(investigator)
    store.upsert_session(session)
    return store
