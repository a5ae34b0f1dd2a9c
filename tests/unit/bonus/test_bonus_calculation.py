"""
Unit Tests for Bonus Calculation

Value, turnover, expiry and per-category turnover contribution.
"""

from datetime import timedelta

import pytest

from microservices.bonus_service.calculation import (
    base_amount,
    calculate_expiration,
    calculate_turnover,
    calculate_turnover_contribution,
    calculate_value,
    floor_capped,
    get_contribution_rate,
    get_tier_multiplier,
)
from microservices.bonus_service.models import BonusTemplate
from tests.contracts.bonus.data_contract import BonusTestDataFactory

pytestmark = pytest.mark.unit


def _template(bonus_type: str = "reload", **fields) -> BonusTemplate:
    return BonusTemplate.model_validate(BonusTestDataFactory.make_template(bonus_type, **fields))


class TestValueCalculation:

    def test_fixed_value(self, data_factory):
        assert calculate_value(_template(value=25), data_factory.make_deposit_context(5000)) == 25

    def test_percentage_capped(self, data_factory):
        template = _template("first_deposit", value_type="percentage", value=10, max_value=100)

        assert calculate_value(template, data_factory.make_deposit_context(2000)) == 100
        assert calculate_value(template, data_factory.make_deposit_context(500)) == 50

    def test_percentage_falls_back_to_activity_amount(self, data_factory):
        template = _template("cashback", value_type="percentage", value=5)
        assert calculate_value(template, data_factory.make_context(activity_amount=200)) == pytest.approx(10)

    def test_percentage_without_amount_is_zero(self, data_factory):
        template = _template(value_type="percentage", value=10)
        assert calculate_value(template, data_factory.make_context()) == 0

    @pytest.mark.parametrize("tier,expected", [
        ("gold", 75.0),
        ("DIAMOND", 125.0),
        (None, 50.0),
        ("unknown", 50.0),
    ])
    def test_tiered_value(self, data_factory, tier, expected):
        template = _template("loyalty", value_type="tiered", value=50)
        assert calculate_value(template, data_factory.make_context(user_tier=tier)) == expected

    def test_dynamic_combo_grows_past_minimum(self, data_factory):
        template = _template("combo", value_type="dynamic", value=10, combo_multiplier=1.1, min_actions=3)

        assert calculate_value(template, data_factory.make_context(selection_count=5)) == pytest.approx(12.1)
        assert calculate_value(template, data_factory.make_context(selection_count=2)) == 10

    def test_dynamic_streak_capped_at_week(self, data_factory):
        template = _template("streak", value_type="dynamic", value=5)

        assert calculate_value(template, data_factory.make_context(consecutive_days=3)) == 15
        assert calculate_value(template, data_factory.make_context(consecutive_days=20)) == 35

    def test_base_amount_prefers_deposit(self, data_factory):
        context = data_factory.make_context(deposit_amount=10, activity_amount=99)
        assert base_amount(context) == 10

    def test_tier_multiplier_is_case_insensitive(self):
        assert get_tier_multiplier("Platinum") == 2.0


class TestTurnoverAndExpiry:

    def test_turnover_is_value_times_multiplier(self, data_factory):
        template = _template(value=20, turnover_multiplier=35)
        assert calculate_turnover(template, data_factory.make_context()) == 700

    def test_turnover_uses_given_value(self, data_factory):
        template = _template(value=20, turnover_multiplier=10)
        assert calculate_turnover(template, data_factory.make_context(), bonus_value=7) == 70

    def test_expiration_from_template(self, data_factory):
        now = data_factory.now()
        assert calculate_expiration(_template(expiration_days=7), now) == now + timedelta(days=7)

    def test_expiration_default(self, data_factory):
        now = data_factory.now()
        assert calculate_expiration(_template(), now, default_days=14) == now + timedelta(days=14)


class TestContribution:

    def test_no_map_contributes_fully(self):
        assert get_contribution_rate(_template(), "slots") == 100

    def test_uncategorised_activity_contributes_fully(self):
        template = _template(activity_contributions={"slots": 50})
        assert get_contribution_rate(template, None) == 100

    def test_map_missing_category_contributes_nothing(self):
        template = _template(activity_contributions={"slots": 100})
        assert get_contribution_rate(template, "table") == 0

    def test_mapped_rate(self):
        template = _template(activity_contributions={"slots": 100, "live": 10})
        assert get_contribution_rate(template, "live") == 10

    @pytest.mark.parametrize("amount,rate,expected", [
        (100, 100, 100),
        (100, 10, 10),
        (15.7, 100, 15),
        (9, 10, 0),
    ])
    def test_contribution_is_floored(self, amount, rate, expected):
        assert calculate_turnover_contribution(amount, rate) == expected

    def test_floor_capped(self):
        assert floor_capped(105.9, 100) == 100
        assert floor_capped(99.9, None) == 99
