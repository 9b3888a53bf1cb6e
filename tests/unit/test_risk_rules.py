# tests/unit/test_risk_rules.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.services.risk_scoring import PastOrder, compute_risk, risk_level_for

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def _past(**kw) -> PastOrder:
    base = dict(
        id=1,
        customer_phone="0600000000",
        normalized_address=None,
        ip_address=None,
        cookie_id_hash=None,
        created_at=NOW - timedelta(days=1),
        skus=["9-OTHER"],
    )
    base.update(kw)
    return PastOrder(**base)


def _risk(past=(), **kw):
    args = dict(
        cookie_id_hash=None,
        customer_phone="0612345678",
        normalized_address=None,
        ip_address=None,
        address_line1="Knez Mihailova 12",
        skus=["1-A"],
        confidence=None,
        past_orders=list(past),
        now=NOW,
    )
    args.update(kw)
    return compute_risk(**args)


@pytest.mark.parametrize("score, level", [(0, "low"), (24, "low"), (25, "medium"), (49, "medium"), (50, "high")])
def test_level_thresholds(score, level):
    assert risk_level_for(score) == level


def test_no_history_no_signals():
    r = _risk()
    assert (r.score, r.level, r.reasons) == (0, "low", [])


def test_bad_contact_details_score_without_history():
    r = _risk(customer_phone="0612", address_line1="Main 1")
    assert r.score == 25
    assert r.reasons == ["phone_invalid", "address_too_short"]
    assert r.level == "medium"


def test_old_cookie_match_is_not_rapid():
    r = _risk([_past(cookie_id_hash="c")], cookie_id_hash="c")
    assert r.reasons == ["same_cookie (1 prior orders)"]
    assert r.score == 40


def test_rapid_reorder_within_two_hours():
    r = _risk([_past(cookie_id_hash="c", created_at=NOW - timedelta(minutes=30))], cookie_id_hash="c")
    assert r.score == 60
    assert r.level == "high"


def test_short_normalized_address_is_ignored():
    r = _risk([_past(normalized_address="Nis 1")], normalized_address="Nis 1")
    assert r.score == 0


def test_address_and_ip_matches():
    past = [_past(normalized_address="bulevar oslobodjenja 10", ip_address="1.2.3.4")]
    r = _risk(past, normalized_address="bulevar oslobodjenja 10", ip_address="1.2.3.4")
    assert r.reasons == ["same_address (1 prior)", "same_ip (1 prior)"]
    assert r.score == 40


def test_exact_sku_match_ignores_order():
    r = _risk([_past(skus=["2-B", "1-A"])], skus=["1-A", "2-B"])
    assert r.reasons == ["exact_sku_match"]
    assert r.score == 30


def test_low_confidence_floor_does_not_lower_score():
    assert _risk(confidence=0.4).score == 25
    high = _risk([_past(customer_phone="0612345678", cookie_id_hash="c")], cookie_id_hash="c", confidence=0.4)
    assert high.score == 75
    assert high.reasons[-1] == "low_confidence_address"
