import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from arkham_keeper.pipeline.orchestrator import KeeperTurnOrchestrator
from arkham_keeper.storage import Storage
from backend.routes import router

load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def create_app(data_dir: Path | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    storage = Storage(resolved)

    app = FastAPI(title="Arkham Keeper")
    app.state.storage = storage
    # Settings are re-read per turn so PATCH /api/settings applies immediately
    app.state.orchestrator = KeeperTurnOrchestrator(storage, settings=storage.get_settings)
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
