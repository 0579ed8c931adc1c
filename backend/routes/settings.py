"""Health check, settings, and connection check endpoints."""

import httpx
from fastapi import APIRouter, Request

from arkham_keeper.llm import DEFAULT_BASE_URL

from .models import CheckConnectionBody

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.post("/check-connection")
async def check_connection(body: CheckConnectionBody):
    """Quick health check against an OpenAI-compatible base URL."""
    url = f"{(body.base_url or DEFAULT_BASE_URL).rstrip('/')}/v1/models"
    headers: dict[str, str] = {}
    if body.api_key:
        headers["Authorization"] = f"Bearer {body.api_key}"
    try:
        async with httpx.AsyncClient(timeout=5) as client:
            resp = await client.get(url, headers=headers)
            resp.raise_for_status()
        return {"ok": True}
    except httpx.HTTPError:
        return {"ok": False}


@router.get("/settings")
async def get_settings(request: Request):
    """Get Keeper settings (LLM connection, language, prompt fragments)."""
    return request.app.state.storage.get_settings()


@router.patch("/settings")
async def update_settings(request: Request, body: dict):
    """Update Keeper settings (partial merge)."""
    return request.app.state.storage.update_settings(body)
