from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Mode = Literal["narrow", "broad"]


class CycleRequest(BaseModel):
    counties: list[str] = Field(default_factory=list)
    mode: Mode = "broad"
    as_of: datetime | None = None


class SourceCountsOut(BaseModel):
    source: str
    kind: str
    crawled: int = Field(..., ge=0)
    deduplicated: int = Field(..., ge=0)
    scored: int = Field(..., ge=0)
    promoted: int = Field(..., ge=0)
    held: int = Field(..., ge=0)
    errored: int = Field(..., ge=0)
    timed_out: bool = False
    error: str | None = None
    elapsed_ms: int = 0
    error_reasons: dict[str, int] = Field(default_factory=dict)


class CycleResultOut(BaseModel):
    counties: list[str]
    mode: Mode
    elapsed_ms: int
    job_run_id: int | None = None
    totals: dict[str, int]
    sources: list[SourceCountsOut]


class PredictionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    property_id: int
    model_version: str
    predictive_score: int
    days_until_distress: int
    confidence: int
    label: Literal["imminent", "likely", "possible", "unlikely"]
    predicted_at: datetime


class PartnerLead(BaseModel):
    apn: str | None = None
    county: str = Field(..., min_length=1)
    address: str | None = None
    city: str | None = None
    state: str | None = None
    owner_name: str | None = None
    heat_score: float = Field(0, ge=0, le=100)
    tags: list[str] = Field(default_factory=list)
    estimated_value: float | None = None
    equity_percent: float | None = None
    loan_balance: float | None = None
    pushed_at: datetime | None = None
    partner_ref: str | None = None


class PartnerPush(BaseModel):
    partner_id: str = Field(..., min_length=1)
    leads: list[PartnerLead] = Field(..., min_length=1)
