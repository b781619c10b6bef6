# sentinel/domain/scoring.py
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from .parsing import is_truthy
from .types import Factor, ScoreResult, ScoringSignal


def _default_type_weights() -> dict[str, float]:
    return {
        "probate": 28.0,
        "pre_foreclosure": 26.0,
        "tax_lien": 22.0,
        "code_violation": 14.0,
        "vacant": 12.0,
        "divorce": 20.0,
        "bankruptcy": 24.0,
        "fsbo": 16.0,
        "absentee": 10.0,
        "inherited": 25.0,
    }


def _default_owner_points() -> dict[str, float]:
    return {
        "absentee": 5.0,
        "corporate": -3.0,
        "inherited": 8.0,
        "elderly": 4.0,
        "out_of_state": 6.0,
    }


@dataclass(frozen=True)
class ScoringConfig:
    """
    Every constant of the heat model. Changing any value means a new `version`,
    otherwise persisted ScoringRecords stop being interpretable.
    """
    version: str = "heat-v3.0"

    type_weights: Mapping[str, float] = field(default_factory=_default_type_weights)
    default_type_weight: float = 10.0

    # (min severity, multiplier), checked top-down
    severity_tiers: tuple[tuple[int, float], ...] = ((9, 1.8), (6, 1.5), (3, 1.25), (0, 1.0))
    min_severity: int = 1
    max_severity: int = 10

    half_life_days: float = 120.0
    max_recency_days: float = 730.0

    # index = number of distinct event types; counts past the end use the last entry
    stacking_bonus: tuple[float, ...] = (0.0, 0.0, 8.0, 14.0, 18.0, 20.0)

    owner_points: Mapping[str, float] = field(default_factory=_default_owner_points)

    equity_max_points: float = 12.0
    equity_saturation_percent: float = 80.0
    comp_neutral_ratio: float = 1.1
    comp_points_per_unit: float = 20.0
    comp_min_points: float = -8.0
    comp_max_points: float = 10.0

    conversion_baseline: float = 0.10
    conversion_max_shift: float = 0.15

    label_thresholds: tuple[tuple[int, str], ...] = ((85, "fire"), (65, "hot"), (40, "warm"))
    floor_label: str = "cold"


DEFAULT_SCORING_CONFIG = ScoringConfig()


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def _finite(x: Any, default: float = 0.0) -> float:
    try:
        f = float(x)
    except (TypeError, ValueError):
        return default
    return f if math.isfinite(f) else default


def clamp_severity(severity: Any, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> int:
    return int(_clamp(round(_finite(severity, config.min_severity)), config.min_severity, config.max_severity))


def severity_multiplier(severity: Any, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> float:
    sev = clamp_severity(severity, config)
    for floor, mult in config.severity_tiers:
        if sev >= floor:
            return mult
    return 1.0


def recency_decay(days_since_event: Any, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> float:
    """Half-life decay in (0, 1]. Future-dated events count as fresh; age is capped so it never reaches 0."""
    days = _clamp(_finite(days_since_event), 0.0, config.max_recency_days)
    return 0.5 ** (days / config.half_life_days)


def stacking_bonus(distinct_types: int, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> float:
    table = config.stacking_bonus
    return table[min(max(distinct_types, 0), len(table) - 1)]


def owner_factor(owner_flags: Mapping[str, Any] | None, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> tuple[float, list[Factor]]:
    flags = owner_flags or {}
    total = 0.0
    factors: list[Factor] = []
    for name in sorted(config.owner_points):
        if is_truthy(flags.get(name)):
            pts = config.owner_points[name]
            total += pts
            factors.append(Factor(name=f"owner:{name}", value=True, contribution=pts))
    return total, factors


def equity_points(equity_percent: Any, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> float:
    if equity_percent is None:
        return 0.0
    eq = _clamp(_finite(equity_percent), 0.0, 100.0)
    return config.equity_max_points * min(eq, config.equity_saturation_percent) / config.equity_saturation_percent


def comp_points(comp_ratio: Any, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> float:
    if comp_ratio is None:
        return 0.0
    ratio = _clamp(_finite(comp_ratio, config.comp_neutral_ratio), 0.0, 10.0)
    pts = (ratio - config.comp_neutral_ratio) * config.comp_points_per_unit
    return _clamp(pts, config.comp_min_points, config.comp_max_points)


def conversion_multiplier(rate: Any, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> float:
    if rate is None:
        return 1.0
    r = _clamp(_finite(rate, config.conversion_baseline), 0.0, 1.0)
    return 1.0 + _clamp(r - config.conversion_baseline, -config.conversion_max_shift, config.conversion_max_shift)


def score_label(composite: int, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> str:
    for floor, label in config.label_thresholds:
        if composite >= floor:
            return label
    return config.floor_label


def compute_score(
    signals: Iterable[ScoringSignal],
    owner_flags: Mapping[str, Any] | None,
    equity_percent: float | None,
    comp_ratio: float | None,
    historical_conversion_rate: float | None,
    *,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> ScoreResult:
    """
    Deterministic heat score.

    No clock, no randomness: `days_since_event` is computed by the caller from an
    explicit as-of timestamp. Signals are summed in (event_type, days, severity) order
    so the float result does not depend on the order the caller supplied them in.
    Out-of-range inputs are clamped, never rejected.
    """
    ordered = sorted(
        signals,
        key=lambda s: (str(s.event_type), _finite(s.days_since_event), _finite(s.severity)),
    )

    factors: list[Factor] = []
    signal_score = 0.0
    max_sev_mult = 1.0
    min_decay = 1.0
    for s in ordered:
        weight = config.type_weights.get(str(s.event_type), config.default_type_weight)
        mult = severity_multiplier(s.severity, config)
        decay = recency_decay(s.days_since_event, config)
        term = weight * mult * decay
        signal_score += term
        max_sev_mult = max(max_sev_mult, mult)
        min_decay = min(min_decay, decay)
        factors.append(
            Factor(
                name=f"signal:{s.event_type}",
                value={"severity": clamp_severity(s.severity, config), "days": _finite(s.days_since_event)},
                contribution=round(term, 4),
            )
        )

    distinct = len({str(s.event_type) for s in ordered})
    stack = stacking_bonus(distinct, config)
    if stack:
        factors.append(Factor(name="stacking", value=distinct, contribution=stack))

    owner, owner_factors = owner_factor(owner_flags, config)
    factors.extend(owner_factors)

    eq_pts = equity_points(equity_percent, config)
    cmp_pts = comp_points(comp_ratio, config)
    if equity_percent is not None:
        factors.append(Factor(name="equity_percent", value=equity_percent, contribution=round(eq_pts, 4)))
    if comp_ratio is not None:
        factors.append(Factor(name="comp_ratio", value=comp_ratio, contribution=round(cmp_pts, 4)))
    equity = eq_pts + cmp_pts

    raw = signal_score + stack + owner + equity
    multiplier = conversion_multiplier(historical_conversion_rate, config)
    ai_boost = raw * (multiplier - 1.0)
    if historical_conversion_rate is not None:
        factors.append(
            Factor(name="historical_conversion", value=historical_conversion_rate, contribution=round(ai_boost, 4))
        )

    composite = int(_clamp(round(raw * multiplier), 0, 100))
    motivation = int(_clamp(round(signal_score + owner + stack), 0, 100))
    equity_span = config.equity_max_points + config.comp_max_points
    deal = int(_clamp(round(100.0 * equity / equity_span), 0, 100))

    return ScoreResult(
        composite=composite,
        label=score_label(composite, config),
        motivation_score=motivation,
        deal_score=deal,
        signal_score=round(signal_score, 4),
        severity_multiplier=max_sev_mult,
        recency_decay=round(min_decay, 6),
        stacking_bonus=stack,
        owner_factor_score=owner,
        equity_factor_score=round(equity, 4),
        ai_boost=round(ai_boost, 4),
        factors=tuple(factors),
        model_version=config.version,
    )
