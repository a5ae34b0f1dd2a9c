"""
Bonus Event Component Tests

Upstream NATS subscriptions delivered through MockEventBus, and the
best-effort behaviour of the lifecycle publishers.

Usage:
    pytest tests/component/bonus/test_bonus_events_component.py -v
"""

import pytest
import pytest_asyncio

from microservices.bonus_service.events.handlers import (
    get_event_handlers,
    handle_activity_recorded,
    handle_deposit_completed,
)
from microservices.bonus_service.events.publishers import publish_bonus_awarded

pytestmark = [pytest.mark.component, pytest.mark.asyncio]


@pytest_asyncio.fixture
async def subscribed_bus(bonus_engine, mock_event_bus):
    for pattern, handler in get_event_handlers(bonus_engine).items():
        await mock_event_bus.subscribe_to_events(pattern, handler, durable=f"bonus-{pattern}-consumer")
    return mock_event_bus


class TestSubscriptions:

    async def test_handler_patterns(self, bonus_engine):
        handlers = get_event_handlers(bonus_engine)

        assert set(handlers) == {
            "payment.deposit.completed",
            "order.completed",
            "user.action.completed",
            "activity.recorded",
        }

    async def test_deposit_event_awards_reload(self, subscribed_bus, template_repo, user_bonus_repo, data_factory):
        template_repo.add(data_factory.make_template("reload", value=25))
        user_id = data_factory.make_user_id()

        delivered = await subscribed_bus.simulate_event(
            "payment.deposit.completed",
            data_factory.make_event_payload(user_id, 100, is_first_deposit=False),
        )

        assert delivered == 1
        bonuses = list(user_bonus_repo.bonuses.values())
        assert [(b["user_id"], b["type"], b["current_value"]) for b in bonuses] == [(user_id, "reload", 25)]
        assert subscribed_bus.event_published("bonus.awarded")

    async def test_activity_event_adds_turnover(self, subscribed_bus, template_repo, user_bonus_repo, data_factory):
        template = template_repo.add(data_factory.make_turnover_template())
        bonus = user_bonus_repo.add(data_factory.make_user_bonus(template=template, turnover_required=100.0))

        await subscribed_bus.simulate_event(
            "activity.recorded", data_factory.make_event_payload(bonus["user_id"], 40, category="slots")
        )

        assert user_bonus_repo.get(bonus["bonus_id"])["turnover_progress"] == 40

    async def test_action_event(self, subscribed_bus, template_repo, user_bonus_repo, data_factory):
        template_repo.add(data_factory.make_template("first_action"))

        await subscribed_bus.simulate_event(
            "user.action.completed",
            data_factory.make_event_payload(data_factory.make_user_id(), 0, action="profile_completed"),
        )

        assert [b["type"] for b in user_bonus_repo.bonuses.values()] == ["first_action"]


class TestHandlerInput:

    async def test_invalid_payload_ignored(self, bonus_engine, user_bonus_repo, template_repo, data_factory):
        template_repo.add(data_factory.make_template("reload"))

        await handle_deposit_completed({"amount": 100}, bonus_engine)

        assert user_bonus_repo.bonuses == {}

    async def test_zero_amount_activity_skipped(self, bonus_engine, template_repo, user_bonus_repo, data_factory):
        template = template_repo.add(data_factory.make_turnover_template())
        bonus = user_bonus_repo.add(data_factory.make_user_bonus(template=template, turnover_required=100.0))

        await handle_activity_recorded(data_factory.make_event_payload(bonus["user_id"], 0), bonus_engine)

        assert user_bonus_repo.get(bonus["bonus_id"])["turnover_progress"] == 0

    async def test_engine_error_is_logged_not_raised(self, bonus_engine, data_factory, monkeypatch, caplog):
        async def broken(event):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(bonus_engine, "handle_activity", broken)

        await handle_activity_recorded(data_factory.make_event_payload(data_factory.make_user_id(), 10), bonus_engine)

        assert "store unavailable" in caplog.text


class TestPublishers:

    async def test_publish_failure_does_not_fail_award(self, bonus_engine, template_repo, mock_event_bus, data_factory):
        template_repo.add(data_factory.make_template("reload"))
        mock_event_bus.set_error(ConnectionError("nats down"))

        result = await bonus_engine.award("reload", data_factory.make_context())

        assert result.success is True
        assert mock_event_bus.published_events == []

    async def test_no_event_bus(self, data_factory):
        bonus = data_factory.make_user_bonus()

        assert await publish_bonus_awarded(None, bonus) is False

    async def test_awarded_payload(self, mock_event_bus, data_factory):
        bonus = data_factory.make_user_bonus(current_value=75.0)

        assert await publish_bonus_awarded(mock_event_bus, bonus) is True

        event = mock_event_bus.published_events[0]
        assert event.type == "bonus.awarded"
        assert event.source == "bonus_service"
        assert event.data["bonus_id"] == bonus["bonus_id"]
        assert event.data["user_id"] == bonus["user_id"]
