from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Trend(StrEnum):
    up = "up"
    down = "down"
    stable = "stable"


class ScoreWeights(BaseModel):
    """Component weights; meant to sum to 1.0 but not enforced."""

    model_config = ConfigDict(frozen=True)

    uptime: float = 0.30
    health: float = 0.25
    storage: float = 0.20
    latency: float = 0.15
    contribution: float = 0.10


DEFAULT_WEIGHTS = ScoreWeights()


class ScoreComponent(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    weight: float
    value: float


class ScoreComponents(BaseModel):
    model_config = ConfigDict(frozen=True)

    uptime: ScoreComponent
    health: ScoreComponent
    storage: ScoreComponent
    latency: ScoreComponent
    contribution: ScoreComponent


class HealthScoreBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    overall: int = Field(ge=0, le=100)
    grade: str
    trend: Trend
    components: ScoreComponents


class ScoreDistribution(BaseModel):
    excellent: int = 0
    good: int = 0
    fair: int = 0
    poor: int = 0


class NetworkHealthStats(BaseModel):
    average: int = 0
    median: int = 0
    p95: int = 0
    distribution: ScoreDistribution = Field(default_factory=ScoreDistribution)
