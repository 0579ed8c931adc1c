"""Pydantic request models for API endpoints."""

from pydantic import BaseModel


class TurnBody(BaseModel):
    message: str


class ChooseBody(BaseModel):
    index: int
    text: str


class CheckConnectionBody(BaseModel):
    base_url: str | None = None
    api_key: str = ""
