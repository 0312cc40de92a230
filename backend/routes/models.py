"""Pydantic request bodies for API endpoints."""

from pydantic import BaseModel, Field

from haunted_debug.models import PlayerAction


class CreateRun(BaseModel):
    seed: int | None = None
    skill_level: int | None = Field(default=None, ge=0, le=100)


class StartEncounter(BaseModel):
    anomaly_id: str


class TalkBody(BaseModel):
    message: str


class IntentBody(BaseModel):
    intent: str
    pattern_type: str | None = None


class ActionBody(BaseModel):
    action: PlayerAction


class MoveBody(BaseModel):
    room: str


class EthicsViolationBody(BaseModel):
    reason: str
