# tests/test_scoring.py
import random

import pytest

from sentinel.domain.scoring import (
    DEFAULT_SCORING_CONFIG,
    comp_points,
    compute_score,
    conversion_multiplier,
    equity_points,
    recency_decay,
    score_label,
    severity_multiplier,
    stacking_bonus,
)
from sentinel.domain.types import ScoringSignal


def _signals():
    return [
        ScoringSignal("probate", 9, 10.0),
        ScoringSignal("vacant", 5, 40.0),
        ScoringSignal("tax_lien", 6, 200.0),
    ]


def test_same_inputs_same_result_regardless_of_order():
    sigs = _signals()
    base = compute_score(sigs, {"absentee": True}, 60.0, 1.4, 0.12)
    for _ in range(5):
        shuffled = list(sigs)
        random.shuffle(shuffled)
        again = compute_score(shuffled, {"absentee": True}, 60.0, 1.4, 0.12)
        assert again == base


def test_reference_case():
    res = compute_score(
        [ScoringSignal("probate", 9, 10.0), ScoringSignal("vacant", 5, 40.0)],
        {},
        60.0,
        1.4,
        0.12,
    )
    # 47.57 + 11.91 + stack 8 + equity 9 + comp 6 = 82.48, x1.02
    assert res.composite == 84
    assert res.label == "hot"
    assert res.stacking_bonus == 8.0
    assert res.model_version == DEFAULT_SCORING_CONFIG.version
    assert 0 <= res.motivation_score <= 100
    assert 0 <= res.deal_score <= 100


def test_newer_signal_scores_higher():
    fresh = compute_score([ScoringSignal("probate", 8, 5.0)], {}, None, None, None)
    stale = compute_score([ScoringSignal("probate", 8, 400.0)], {}, None, None, None)
    assert fresh.composite > stale.composite
    assert recency_decay(0) == 1.0
    assert recency_decay(120) == pytest.approx(0.5)
    # future-dated counts as fresh, very old never reaches zero
    assert recency_decay(-30) == 1.0
    assert recency_decay(10_000) > 0


def test_stacking_grows_with_distinct_types_only():
    one = compute_score([ScoringSignal("probate", 6, 30.0)], {}, None, None, None)
    same_twice = compute_score([ScoringSignal("probate", 6, 30.0), ScoringSignal("probate", 6, 30.0)], {}, None, None, None)
    two = compute_score([ScoringSignal("probate", 6, 30.0), ScoringSignal("vacant", 6, 30.0)], {}, None, None, None)
    assert same_twice.stacking_bonus == 0.0
    assert two.stacking_bonus > one.stacking_bonus
    assert [stacking_bonus(n) for n in range(7)] == [0.0, 0.0, 8.0, 14.0, 18.0, 20.0, 20.0]


def test_severity_tiers():
    assert severity_multiplier(10) == 1.8
    assert severity_multiplier(9) == 1.8
    assert severity_multiplier(6) == 1.5
    assert severity_multiplier(3) == 1.25
    assert severity_multiplier(1) == 1.0
    # out of range is clamped, not rejected
    assert severity_multiplier(99) == 1.8
    assert severity_multiplier(-4) == 1.0
    assert severity_multiplier("garbage") == 1.0


@pytest.mark.parametrize(
    "composite,label",
    [(100, "fire"), (85, "fire"), (84, "hot"), (65, "hot"), (64, "warm"), (40, "warm"), (39, "cold"), (0, "cold")],
)
def test_label_boundaries(composite, label):
    assert score_label(composite) == label


def test_composite_is_bounded():
    many = [ScoringSignal(t, 10, 0.0) for t in ("probate", "pre_foreclosure", "tax_lien", "bankruptcy", "divorce", "inherited")]
    res = compute_score(many, {"absentee": True, "inherited": True, "out_of_state": True}, 100.0, 3.0, 0.9)
    assert res.composite == 100

    empty = compute_score([], {"corporate": True}, None, 0.1, 0.0)
    assert empty.composite == 0
    assert empty.label == "cold"


def test_corporate_owner_lowers_score():
    sigs = [ScoringSignal("tax_lien", 6, 30.0)]
    person = compute_score(sigs, {}, None, None, None)
    corp = compute_score(sigs, {"corporate": True}, None, None, None)
    assert corp.owner_factor_score < 0
    assert corp.composite < person.composite


def test_equity_saturates_and_comp_is_signed():
    assert equity_points(None) == 0.0
    assert equity_points(40) == pytest.approx(6.0)
    assert equity_points(80) == equity_points(100) == pytest.approx(12.0)

    assert comp_points(1.1) == pytest.approx(0.0)
    assert comp_points(0.9) < 0
    assert comp_points(1.4) == pytest.approx(6.0)
    assert comp_points(5.0) == 10.0
    assert comp_points(0.0) == -8.0


def test_conversion_multiplier_shift_is_bounded():
    assert conversion_multiplier(None) == 1.0
    assert conversion_multiplier(0.10) == pytest.approx(1.0)
    assert conversion_multiplier(0.12) == pytest.approx(1.02)
    assert conversion_multiplier(1.0) == pytest.approx(1.15)
    assert conversion_multiplier(0.0) == pytest.approx(0.9)


def test_factors_explain_the_score():
    res = compute_score([ScoringSignal("probate", 9, 10.0)], {"elderly": True}, 50.0, None, None)
    names = [f.name for f in res.factors]
    assert "signal:probate" in names
    assert "owner:elderly" in names
    assert "equity_percent" in names
    assert all(isinstance(f.as_dict(), dict) for f in res.factors)


def test_three_types_beat_the_strongest_alone():
    strongest = ScoringSignal("probate", 9, 20.0)
    stacked = [strongest, ScoringSignal("vacant", 4, 20.0), ScoringSignal("code_violation", 3, 20.0)]
    alone = compute_score([strongest], {}, 50.0, 1.2, 0.1)
    together = compute_score(stacked, {}, 50.0, 1.2, 0.1)
    assert together.stacking_bonus == 14.0
    assert together.composite > alone.composite
