# sentinel/domain/types.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class ScoringSignal:
    event_type: str
    severity: float
    days_since_event: float


@dataclass(frozen=True)
class Factor:
    name: str
    value: Any
    contribution: float

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ScoreResult:
    composite: int
    label: str
    motivation_score: int
    deal_score: int
    signal_score: float
    severity_multiplier: float
    recency_decay: float
    stacking_bonus: float
    owner_factor_score: float
    equity_factor_score: float
    ai_boost: float
    factors: tuple[Factor, ...]
    model_version: str


@dataclass(frozen=True)
class PredictiveEvent:
    event_type: str
    severity: int
    days_ago: float


@dataclass(frozen=True)
class ScoreSnapshot:
    """One historical ScoringRecord reduced to what the predictive model reads."""
    days_ago: float
    composite: int
    equity_percent: float | None


@dataclass(frozen=True)
class PredictiveInput:
    owner_age: int | None = None
    equity_burn_rate: float | None = None
    absentee_duration_days: int | None = None
    tax_delinquency_trend: float | None = None
    life_event_probability: float | None = None
    signal_velocity: int = 0
    ownership_stress: float = 0.0
    market_exposure: float = 0.0
    foreclosure_stage: str | None = None
    days_since_latest_signal: float | None = None
    distress_types: tuple[str, ...] = ()
    history_depth: int = 0
    # presence checklist used for confidence
    has_owner_flags: bool = False
    has_equity: bool = False
    has_value: bool = False

    def as_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["distress_types"] = list(self.distress_types)
        return d


@dataclass(frozen=True)
class PredictionResult:
    predictive_score: int
    days_until_distress: int
    confidence: int
    label: str
    features: PredictiveInput
    factors: tuple[Factor, ...] = field(default_factory=tuple)
    model_version: str = ""
