"""Session read + Keeper turn endpoints."""

from fastapi import APIRouter, HTTPException, Request

from arkham_keeper.pipeline.orchestrator import KeeperTurnOrchestrator, TurnResult
from arkham_keeper.storage import RecordNotFoundError, Storage

from .models import ChooseBody, TurnBody

router = APIRouter()


def _storage(request: Request) -> Storage:
    return request.app.state.storage


def _orchestrator(request: Request, session_id: str) -> KeeperTurnOrchestrator:
    """Return the orchestrator, refusing when a turn is already running."""
    orchestrator: KeeperTurnOrchestrator = request.app.state.orchestrator
    if _storage(request).get_session(session_id) is None:
        raise HTTPException(404, "Session not found")
    if orchestrator.is_streaming(session_id):
        raise HTTPException(409, "A Keeper turn is already in progress")
    return orchestrator


def _committed(result: TurnResult | None) -> TurnResult:
    if result is None:
        raise HTTPException(400, "Nothing to submit")
    return result


@router.get("/sessions")
async def list_sessions(request: Request):
    """List sessions, most recently opened first."""
    return _storage(request).list_sessions()


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, request: Request):
    """Get a session, including any partial in-flight Keeper message."""
    session = _storage(request).get_session(session_id)
    if not session:
        raise HTTPException(404, "Session not found")
    return session


@router.post("/sessions/{session_id}/intro")
async def start_introduction(session_id: str, request: Request):
    """Run the automatic introduction turn (only on an empty chat)."""
    orchestrator = _orchestrator(request, session_id)
    try:
        result = await orchestrator.start_introduction(session_id)
    except RecordNotFoundError as e:
        raise HTTPException(404, str(e))
    if result is None:
        return {"started": False}
    return result


@router.post("/sessions/{session_id}/turn")
async def submit_turn(session_id: str, body: TurnBody, request: Request):
    """Send a player action and run one Keeper turn."""
    orchestrator = _orchestrator(request, session_id)
    try:
        result = await orchestrator.run_turn(session_id, body.message)
    except RecordNotFoundError as e:
        raise HTTPException(404, str(e))
    return _committed(result)


@router.post("/sessions/{session_id}/choose")
async def choose(session_id: str, body: ChooseBody, request: Request):
    """Pick one of the Keeper's listed choices."""
    orchestrator = _orchestrator(request, session_id)
    try:
        result = await orchestrator.choose(session_id, body.index, body.text)
    except RecordNotFoundError as e:
        raise HTTPException(404, str(e))
    return _committed(result)


@router.post("/sessions/{session_id}/rewrite")
async def rewrite_last_action(session_id: str, body: TurnBody, request: Request):
    """Replace the last player action with a new one (history is kept)."""
    orchestrator = _orchestrator(request, session_id)
    try:
        result = await orchestrator.rewrite_last_action(session_id, body.message)
    except RecordNotFoundError as e:
        raise HTTPException(404, str(e))
    return _committed(result)


@router.post("/sessions/{session_id}/cancel")
async def cancel_turn(session_id: str, request: Request):
    """Stop showing further tokens of the in-flight Keeper turn."""
    orchestrator: KeeperTurnOrchestrator = request.app.state.orchestrator
    return {"cancelled": orchestrator.cancel(session_id)}
