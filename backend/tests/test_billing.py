"""Tests for the billing period and per-call cost."""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.ai_config import AIConfig, TokenPrice
from app.core.billing import BillingPeriod
from app.schemas.ai import RequestType, Tier


def test_billing_period_is_utc_calendar_month():
    period = BillingPeriod.containing(datetime(2026, 3, 18, 23, 59, tzinfo=timezone.utc))
    assert period.start == datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert period.end == datetime(2026, 4, 1, tzinfo=timezone.utc)


def test_billing_period_december_rolls_over():
    period = BillingPeriod.containing(datetime(2026, 12, 31, 12, tzinfo=timezone.utc))
    assert period.end == datetime(2027, 1, 1, tzinfo=timezone.utc)


def test_billing_period_normalises_offsets():
    # 00:30 on April 1st at +02:00 is still March in UTC
    local = datetime(2026, 4, 1, 0, 30, tzinfo=timezone(timedelta(hours=2)))
    assert BillingPeriod.containing(local).start == datetime(2026, 3, 1, tzinfo=timezone.utc)


def test_cost_rounds_half_up_on_exact_cents():
    # 28700 * 0.00025 + 12300 * 0.00125 = 22.55 / 1000 dollars = 2.255 cents
    assert AIConfig().cost_cents("claude-3-haiku-20240307", 41000) == 2.26


def test_cost_splits_tokens_70_30():
    config = AIConfig(prices={"m": TokenPrice(input=1, output=2)})
    assert config.cost_cents("m", 1000) == pytest.approx(130.0)
    assert config.cost_cents("m", 0) == 0


def test_cost_of_unknown_model_is_zero():
    assert AIConfig().cost_cents("local", 5000) == 0


def test_cost_rounded_to_hundredths_of_a_cent():
    cost = AIConfig().cost_cents("claude-3-haiku-20240307", 12345)
    assert cost == round(cost, 2)
    assert cost > 0


def test_default_limits():
    config = AIConfig()
    assert config.limit_for(RequestType.COACH_CHAT, Tier.FREE) == 5
    assert config.limit_for(RequestType.PARSE_WORKOUT, Tier.ELITE) is None
    assert config.limit_for(RequestType.PHOTO_ANALYSIS, Tier.FREE) == 0
