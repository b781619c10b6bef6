# sentinel/domain/promotion.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

PROMOTE = "promote"
HOLD = "hold"


@dataclass(frozen=True)
class BlendConfig:
    version: str = "blend-v1.0"
    deterministic_weight: float = 0.6
    predictive_weight: float = 0.4


DEFAULT_BLEND_CONFIG = BlendConfig()


def blend_heat_score(
    latest_composite: int,
    predictive_score: int | None,
    config: BlendConfig = DEFAULT_BLEND_CONFIG,
) -> int:
    """
    Fixed-weight blend of the evidence score and the predictive score.
    Without a prediction the deterministic composite stands alone.
    """
    if predictive_score is None:
        return int(max(0, min(100, latest_composite)))
    blended = config.deterministic_weight * latest_composite + config.predictive_weight * predictive_score
    return int(max(0, min(100, round(blended))))


def decide_promotion(blended: int, source_threshold: int) -> str:
    return PROMOTE if blended >= source_threshold else HOLD


def threshold_for(source_kind: str, thresholds: Mapping[str, int]) -> int:
    """Source-dependent cutoff; unknown kinds get the strictest one."""
    if source_kind in thresholds:
        return thresholds[source_kind]
    return max(thresholds.values())


def merge_tags(existing: Iterable[str], incoming: Iterable[str]) -> list[str]:
    """Union, order-preserving (existing first)."""
    out: list[str] = []
    for t in list(existing) + list(incoming):
        t = str(t).strip()
        if t and t not in out:
            out.append(t)
    return out
