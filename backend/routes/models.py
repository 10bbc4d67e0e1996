"""Pydantic request/response models for API endpoints."""

from typing import Any

from pydantic import BaseModel


class DefinitionBody(BaseModel):
    name: str | None = None
    description: str | None = None
    base_duration: float | None = None
    duration_variance: float | None = None
    magnitude: dict[str, float] | list[float] | float | None = None
    default_tags: list[str] | None = None
    memory_prompt: str | None = None
    metadata: dict[str, Any] | None = None


class TriggerBody(BaseModel):
    type: str
    overrides: dict[str, Any] = {}


class ResolveBody(BaseModel):
    resolution: dict[str, Any] = {}


class ProgressBody(BaseModel):
    elapsed: float


class MemoryChoiceBody(BaseModel):
    moment_id: str | None = None
    choice: dict[str, Any] = {}
    prompt: str = ""
    context: dict[str, Any] = {}


class CreateTech(BaseModel):
    id: str
    name: str = ""
    state: str = "Operable"
    resilience: dict[str, int] | None = None


class LinkBody(BaseModel):
    target: str
    metadata: dict[str, Any] = {}


class RelearnBody(BaseModel):
    steps: int = 1


class AdvanceBody(BaseModel):
    delta: float
    time_scale: float | None = None


class ScoreBody(BaseModel):
    thresholds: dict[str, float] | None = None


class SaveWorldBody(BaseModel):
    name: str
