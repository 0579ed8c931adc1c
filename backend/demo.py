"""Create demo records for development/testing."""

import shutil

from arkham_keeper.models import (
    Investigator,
    LogEntry,
    Scenario,
    ScenarioMeta,
    Session,
)
from arkham_keeper.storage import Storage

DEMO_SCENARIO = Scenario(
    id="the-haunting",
    name="The Haunting",
    premise=(
        "Investigate a haunted house in Boston where strange whispers and "
        "scratching behind the walls hint at something older than the city itself."
    ),
    short_description="Investigate a haunted house in Boston.",
    source="predefined",
    tags=["1920s", "Investigation", "Urban"],
    meta=ScenarioMeta(
        era="1920s",
        tone="Investigation-heavy",
        setting_description="Boston townhouse",
    ),
)

DEMO_INVESTIGATOR = Investigator(
    id="eleanor-price",
    name="Eleanor Price",
    occupation="Journalist",
    background=(
        "A reporter for the Boston Globe who lost her brother to an unsolved "
        "disappearance and has chased strange stories ever since."
    ),
    personality_traits=["Curious", "Stubborn", "Dry humour"],
    skills_summary="Library Use, Psychology, Spot Hidden, Persuade",
    scenario_id=DEMO_SCENARIO.id,
)


def create_demo_data(storage: Storage) -> Session:
    """Wipe existing sessions and create a fresh demo session. Returns it."""
    sessions_dir = storage.sessions_dir()
    if sessions_dir.exists():
        shutil.rmtree(sessions_dir)
    sessions_dir.mkdir(parents=True, exist_ok=True)

    storage.save_scenario(DEMO_SCENARIO)
    storage.save_investigator(DEMO_INVESTIGATOR)

    session_id = "demo-session"
    session = Session(
        id=session_id,
        title="The Haunting Demo Run",
        scenario_id=DEMO_SCENARIO.id,
        investigator_id=DEMO_INVESTIGATOR.id,
        status="setup",
        log=[
            LogEntry(
                id="demo-log-start",
                session_id=session_id,
                type="session_start",
                title="Session started",
                details="Eleanor arrives at the Corbitt house on a rainy evening.",
            ),
        ],
    )
    return storage.upsert_session(session)
