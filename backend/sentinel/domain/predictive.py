# sentinel/domain/predictive.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Sequence

from .parsing import clean_str, is_truthy, parse_date, to_int, to_number
from .types import Factor, PredictionResult, PredictiveEvent, PredictiveInput, ScoreSnapshot


def _default_feature_weights() -> dict[str, float]:
    return {
        "owner_age": 0.12,
        "equity_burn_rate": 0.18,
        "absentee_duration": 0.10,
        "tax_delinquency_trend": 0.16,
        "life_event_probability": 0.20,
        "signal_velocity": 0.10,
        "ownership_stress": 0.08,
        "market_exposure": 0.06,
    }


def _default_life_event_rates() -> dict[str, float]:
    return {
        "probate": 0.035,
        "divorce": 0.025,
        "bankruptcy": 0.018,
        "pre_foreclosure": 0.022,
        "tax_lien": 0.040,
        "code_violation": 0.015,
        "inherited": 0.030,
    }


@dataclass(frozen=True)
class PredictiveConfig:
    """All predictive constants; bump `version` whenever one changes."""
    version: str = "pred-v3.0"
    feature_weights: Mapping[str, float] = field(default_factory=_default_feature_weights)
    life_event_rates: Mapping[str, float] = field(default_factory=_default_life_event_rates)
    default_life_event_rate: float = 0.01
    # (min age, multiplier) top-down; unknown age -> 1.0
    age_curve: tuple[tuple[int, float], ...] = ((80, 2.8), (70, 2.2), (60, 1.6), (50, 1.2), (40, 1.0), (0, 0.7))
    # (min score, days) top-down
    days_buckets: tuple[tuple[int, int], ...] = (
        (90, 14), (80, 30), (70, 60), (60, 90), (50, 120), (40, 180), (25, 270), (0, 365),
    )
    min_days: int = 7
    velocity_window_days: int = 90
    imminent_days: int = 30
    imminent_min_confidence: int = 60
    likely_days: int = 90
    possible_days: int = 180


DEFAULT_PREDICTIVE_CONFIG = PredictiveConfig()


@dataclass(frozen=True)
class PropertyFacts:
    """The slice of a Property the predictive model reads."""
    estimated_value: float | None = None
    equity_percent: float | None = None
    loan_balance: float | None = None
    owner_flags: Mapping[str, Any] = field(default_factory=dict)


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def _slope_per_year(points: Sequence[tuple[float, float]]) -> float | None:
    """Least-squares slope of (days, value) pairs, per 365 days. None when x has no spread."""
    if len(points) < 2:
        return None
    n = float(len(points))
    mx = sum(p[0] for p in points) / n
    my = sum(p[1] for p in points) / n
    sxx = sum((p[0] - mx) ** 2 for p in points)
    if sxx < 1.0:
        return None
    sxy = sum((p[0] - mx) * (p[1] - my) for p in points)
    return (sxy / sxx) * 365.0


def _days_between(as_of: datetime, raw: Any) -> int | None:
    d = parse_date(raw)
    if d is None:
        return None
    return max(0, (as_of - d).days)


def age_multiplier(age: int | None, config: PredictiveConfig = DEFAULT_PREDICTIVE_CONFIG) -> float:
    if age is None:
        return 1.0
    for floor, mult in config.age_curve:
        if age >= floor:
            return mult
    return 1.0


def _infer_owner_age(flags: Mapping[str, Any], as_of: datetime) -> int | None:
    age = to_int(flags.get("owner_age"))
    if age is not None and 18 <= age <= 110:
        return age
    if not is_truthy(flags.get("corporate")):
        held_days = _days_between(as_of, flags.get("last_sale_date"))
        if held_days is not None and held_days >= 365:
            # typical first purchase in early thirties
            return min(95, 33 + int(held_days / 365.25))
    if is_truthy(flags.get("elderly")):
        return 72
    return None


def _equity_burn_rate(facts: PropertyFacts, history: Sequence[ScoreSnapshot]) -> float | None:
    pts = [(-h.days_ago, float(h.equity_percent)) for h in history if h.equity_percent is not None]
    slope = _slope_per_year(pts)
    if slope is not None:
        return round(max(0.0, -slope / 100.0), 6)

    flags = facts.owner_flags
    prev = to_number(flags.get("previous_equity_percent"))
    months = to_number(flags.get("equity_delta_months"))
    if prev is not None and facts.equity_percent is not None and months and months > 0:
        return round(max(0.0, (prev - facts.equity_percent) / 100.0 / (months / 12.0)), 6)
    return None


def _absentee_duration(facts: PropertyFacts, events: Sequence[PredictiveEvent], as_of: datetime) -> int | None:
    seen = [e.days_ago for e in events if e.event_type == "absentee"]
    if seen:
        return int(max(seen))
    since = _days_between(as_of, facts.owner_flags.get("absentee_since"))
    if since is not None:
        return since
    if is_truthy(facts.owner_flags.get("absentee")):
        return 365
    return None


def _tax_trend(facts: PropertyFacts, events: Sequence[PredictiveEvent]) -> float | None:
    tax = [e for e in events if e.event_type == "tax_lien"]
    slope = _slope_per_year([(-e.days_ago, float(e.severity)) for e in tax])
    if slope is not None:
        return round(_clamp(slope / 10.0, -1.0, 1.0), 6)

    owed = to_number(facts.owner_flags.get("delinquent_amount"))
    if owed is not None and facts.estimated_value:
        return round(_clamp(owed / facts.estimated_value, 0.0, 1.0), 6)
    if tax:
        return round(max(e.severity for e in tax) / 40.0, 6)
    return None


def _life_event_probability(types: set[str], age: int | None, config: PredictiveConfig) -> float:
    stay = 1.0
    for t in sorted(types):
        stay *= 1.0 - config.life_event_rates.get(t, config.default_life_event_rate)
    if not types:
        stay = 1.0 - config.default_life_event_rate
    return round(_clamp((1.0 - stay) * age_multiplier(age, config), 0.0, 1.0), 6)


def build_predictive_input(
    facts: PropertyFacts,
    events: Sequence[PredictiveEvent],
    score_history: Sequence[ScoreSnapshot],
    *,
    as_of: datetime,
    config: PredictiveConfig = DEFAULT_PREDICTIVE_CONFIG,
) -> PredictiveInput:
    flags = facts.owner_flags or {}
    types = {e.event_type for e in events}
    age = _infer_owner_age(flags, as_of)

    ltv = 0.0
    if facts.loan_balance and facts.estimated_value:
        ltv = _clamp(facts.loan_balance / facts.estimated_value, 0.0, 1.5)
    stress = _clamp(ltv * 60.0 + len(types) * 8.0, 0.0, 100.0)

    exposure = 0.0
    if "absentee" in types or is_truthy(flags.get("absentee")):
        exposure += 35.0
    if "vacant" in types or is_truthy(flags.get("vacant")):
        exposure += 35.0
    if is_truthy(flags.get("corporate")):
        exposure += 15.0
    if is_truthy(flags.get("out_of_state")):
        exposure += 15.0

    return PredictiveInput(
        owner_age=age,
        equity_burn_rate=_equity_burn_rate(facts, score_history),
        absentee_duration_days=_absentee_duration(facts, events, as_of),
        tax_delinquency_trend=_tax_trend(facts, events),
        life_event_probability=_life_event_probability(types, age, config),
        signal_velocity=sum(1 for e in events if e.days_ago <= config.velocity_window_days),
        ownership_stress=round(stress, 4),
        market_exposure=min(100.0, exposure),
        foreclosure_stage=clean_str(flags.get("foreclosure_stage")),
        days_since_latest_signal=min((e.days_ago for e in events), default=None),
        distress_types=tuple(sorted(types)),
        history_depth=len(score_history),
        has_owner_flags=bool(flags),
        has_equity=facts.equity_percent is not None,
        has_value=facts.estimated_value is not None,
    )


# -----------------------------
# Feature -> 0..100 sub-scores
# -----------------------------
def _age_score(age: int | None) -> float:
    if age is None:
        return 30.0
    if age >= 80:
        return 95.0
    if age >= 70:
        return 80.0
    if age >= 60:
        return 60.0
    if age >= 50:
        return 40.0
    return 20.0


def _burn_score(rate: float | None) -> float:
    if rate is None:
        return 20.0
    for floor, pts in ((0.20, 95.0), (0.15, 80.0), (0.10, 65.0), (0.05, 45.0), (0.02, 25.0)):
        if rate >= floor:
            return pts
    return 10.0


def _absentee_score(days: int | None) -> float:
    if days is None:
        return 0.0
    for floor, pts in ((1825, 90.0), (730, 70.0), (365, 50.0), (90, 30.0)):
        if days >= floor:
            return pts
    return 15.0


def _tax_score(trend: float | None) -> float:
    if trend is None:
        return 0.0
    for floor, pts in ((0.5, 95.0), (0.3, 80.0), (0.15, 60.0), (0.05, 40.0)):
        if trend >= floor:
            return pts
    return 25.0 if trend > 0 else 10.0


def feature_scores(features: PredictiveInput) -> dict[str, float]:
    return {
        "owner_age": _age_score(features.owner_age),
        "equity_burn_rate": _burn_score(features.equity_burn_rate),
        "absentee_duration": _absentee_score(features.absentee_duration_days),
        "tax_delinquency_trend": _tax_score(features.tax_delinquency_trend),
        "life_event_probability": min(100.0, (features.life_event_probability or 0.0) * 1000.0),
        "signal_velocity": min(100.0, features.signal_velocity * 25.0),
        "ownership_stress": features.ownership_stress,
        "market_exposure": features.market_exposure,
    }


def estimate_days_until_distress(
    score: int, features: PredictiveInput, config: PredictiveConfig = DEFAULT_PREDICTIVE_CONFIG
) -> int:
    days = config.days_buckets[-1][1]
    for floor, d in config.days_buckets:
        if score >= floor:
            days = d
            break

    stage = (features.foreclosure_stage or "").lower()
    if "auction" in stage or "sale" in stage:
        days = min(days, 21)
    elif "default" in stage or "lis pendens" in stage or "nod" in stage:
        days = min(days, 60)

    latest = features.days_since_latest_signal
    if latest is not None and latest <= 7:
        days = days * 0.6
    elif latest is not None and latest <= 30:
        days = days * 0.8

    return max(config.min_days, int(round(days)))


def prediction_confidence(features: PredictiveInput) -> int:
    """Data completeness scaled by how much score history backs it."""
    checklist = (
        (features.owner_age is not None, 0.15),
        (features.equity_burn_rate is not None, 0.15),
        (features.absentee_duration_days is not None, 0.10),
        (features.tax_delinquency_trend is not None, 0.15),
        (bool(features.distress_types), 0.20),
        (features.has_value, 0.10),
        (features.has_equity, 0.10),
        (features.has_owner_flags, 0.05),
    )
    completeness = sum(w for present, w in checklist if present)
    history = min(1.0, 0.4 + 0.2 * features.history_depth)
    return int(_clamp(round(completeness * history * 100.0), 5, 98))


def predictive_label(days_until_distress: int, confidence: int, config: PredictiveConfig = DEFAULT_PREDICTIVE_CONFIG) -> str:
    if days_until_distress <= config.imminent_days and confidence >= config.imminent_min_confidence:
        return "imminent"
    if days_until_distress <= config.likely_days:
        return "likely"
    if days_until_distress <= config.possible_days:
        return "possible"
    return "unlikely"


def compute_predictive_score(
    property_id: int | None,
    facts: PropertyFacts,
    events: Sequence[PredictiveEvent],
    score_history: Sequence[ScoreSnapshot],
    *,
    as_of: datetime,
    config: PredictiveConfig = DEFAULT_PREDICTIVE_CONFIG,
) -> PredictionResult:
    features = build_predictive_input(facts, events, score_history, as_of=as_of, config=config)
    subs = feature_scores(features)

    factors: list[Factor] = []
    total = 0.0
    for name in config.feature_weights:
        contribution = config.feature_weights[name] * subs[name]
        total += contribution
        factors.append(Factor(name=name, value=round(subs[name], 4), contribution=round(contribution, 4)))

    score = int(_clamp(round(total), 0, 100))
    days = estimate_days_until_distress(score, features, config)
    confidence = prediction_confidence(features)

    return PredictionResult(
        predictive_score=score,
        days_until_distress=days,
        confidence=confidence,
        label=predictive_label(days, confidence, config),
        features=features,
        factors=tuple(factors),
        model_version=config.version,
    )
