# removals/transport/schemas.py
from typing import Any

from pydantic import BaseModel, Field

from removals.core.calculator.domain import CalcStep


class TrackingIn(BaseModel):
    gclid: str | None = Field(default=None, max_length=256)
    utm_source: str | None = Field(default=None, max_length=128)
    utm_medium: str | None = Field(default=None, max_length=128)
    utm_campaign: str | None = Field(default=None, max_length=256)
    landing_page: str | None = Field(default=None, max_length=2000)


class AnswerIn(BaseModel):
    answer: dict[str, Any]


class GoToIn(BaseModel):
    step: CalcStep


class RecommendationOut(BaseModel):
    vans: int
    movers: int
    load_hours: float


class SessionOut(BaseModel):
    session_id: str
    current_step: str
    progress: int
    applicable_steps: list[str]
    estimated_cubes: float
    recommendation: RecommendationOut | None = None
    recommendation_note: str | None = None
    callback_required: bool
    state: dict[str, Any]


class StepResultOut(SessionOut):
    errors: list[dict[str, Any]] = []


class QuoteOut(BaseModel):
    session_id: str
    callback_required: bool
    callback: dict[str, Any]
    breakdown: dict[str, Any] | None = None


class SubmitOut(BaseModel):
    session_id: str
    callback_required: bool
    notified: bool
    quote: dict[str, Any] | None = None
