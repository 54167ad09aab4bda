"""Tests for in-process event delivery."""

from unittest.mock import MagicMock

from sqlalchemy import text

from app.events import CreditsGranted, CreditsSpent, EventPublisher


def granted(amount=4):
    return CreditsGranted(
        user_id="01HUSER", credit_type="free_hours", amount=amount, balance_after=amount,
        source="admin_adjustment",
    )


def test_listeners_filter_by_event_type(published_events):
    spent_only = MagicMock()
    EventPublisher.register(spent_only, CreditsSpent)

    EventPublisher.publish(granted())

    assert published_events == [granted()]
    spent_only.assert_not_called()


def test_failing_listener_does_not_block_others(published_events):
    EventPublisher.register(MagicMock(side_effect=RuntimeError("listener down")))

    EventPublisher.publish(granted())

    assert len(published_events) == 1


def test_unregister(published_events):
    listener = MagicMock()
    EventPublisher.register(listener)
    EventPublisher.unregister(listener)

    EventPublisher.publish(granted())

    listener.assert_not_called()


def test_queued_events_wait_for_commit(db, published_events):
    db.execute(text("SELECT 1"))
    EventPublisher.publish_after_commit(db, granted(1))
    assert published_events == []

    db.commit()

    assert published_events == [granted(1)]


def test_queued_events_are_dropped_on_rollback(db, published_events):
    db.execute(text("SELECT 1"))
    EventPublisher.publish_after_commit(db, granted(2))

    db.rollback()
    db.commit()

    assert published_events == []
