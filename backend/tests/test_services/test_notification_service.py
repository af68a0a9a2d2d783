"""
Unit tests for NotificationAggregator

Author: TM3
Date: 2025-12-02
"""
import pytest

from storefront.core.errors import NotificationSyncError, PersistenceError
from storefront.core.events import NOTIFICATIONS_CHANGED
from storefront.domain.order import OrderStatus
from storefront.services.notification_service import NotificationAggregator


class AlertRecorder:

    def __init__(self):
        self.calls = []

    def __call__(self, count, notifications):
        self.calls.append((count, [n.order_id for n in notifications]))


@pytest.fixture
def alerts():
    return AlertRecorder()


@pytest.fixture
def seeded(order_repo, order_factory):
    order_repo.insert(order_factory(1, minutes=0))
    order_repo.insert(order_factory(2, minutes=10))
    order_repo.insert(order_factory(3, minutes=5, is_read=True))
    return order_repo


@pytest.fixture
def feed(seeded, alerts, events):
    aggregator = NotificationAggregator(seeded, on_alert=alerts, events=events, include_legacy=True)
    assert aggregator.start()
    yield aggregator
    aggregator.close()


def ids(aggregator):
    return [n.order_id for n in aggregator.notifications]


class TestInitialLoad:

    def test_unread_newest_first(self, feed):
        assert ids(feed) == [2, 1]
        assert feed.unread_count == 2
        assert feed.is_live
        assert feed.loaded

    def test_no_alert_on_first_load(self, feed, alerts):
        assert alerts.calls == []

    def test_not_loaded_before_start(self, order_repo):
        aggregator = NotificationAggregator(order_repo, include_legacy=False)
        assert not aggregator.loaded
        assert aggregator.notifications == []

    def test_ties_broken_by_order_id(self, order_repo, order_factory):
        order_repo.insert(order_factory(7, minutes=1))
        order_repo.insert(order_factory(8, minutes=1))

        aggregator = NotificationAggregator(order_repo, include_legacy=False)
        aggregator.start()

        assert ids(aggregator) == [8, 7]

    def test_notification_fields(self, feed):
        latest = feed.notifications[0]
        assert latest.order_number == "ORD-0002"
        assert latest.customer_name == "Asha Rao"
        assert latest.read is False
        assert latest.to_dict()["total"] == 1000.0


class TestLiveUpdates:

    def test_new_order_appears_and_alerts(self, feed, seeded, order_factory, alerts):
        seeded.insert(order_factory(4, minutes=20))

        assert feed.sync() == 1

        assert ids(feed) == [4, 2, 1]
        assert alerts.calls == [(3, [4, 2, 1])]

    def test_nothing_pending(self, feed):
        assert feed.sync(timeout=0) == 0

    def test_decrease_does_not_alert(self, feed, seeded, alerts):
        seeded.mark_read(1)
        feed.sync()

        assert ids(feed) == [2]
        assert alerts.calls == []

    def test_alerts_can_be_muted(self, feed, seeded, order_factory, alerts):
        assert feed.toggle_alerts() is False
        seeded.insert(order_factory(4, minutes=20))
        feed.sync()

        assert feed.unread_count == 3
        assert alerts.calls == []

    def test_failing_alert_callback_is_contained(self, seeded, order_factory):
        def explode(count, notifications):
            raise RuntimeError("no audio device")

        aggregator = NotificationAggregator(seeded, on_alert=explode, include_legacy=False)
        aggregator.start()
        seeded.insert(order_factory(4, minutes=20))

        aggregator.sync()

        assert aggregator.unread_count == 3

    def test_count_change_is_emitted(self, feed, seeded, order_factory, events):
        counts = []
        events.on(NOTIFICATIONS_CHANGED, counts.append)

        seeded.insert(order_factory(4, minutes=20))
        feed.sync()

        assert counts == [3]


class TestAcknowledge:

    def test_mark_read(self, feed, seeded):
        assert feed.mark_read(2) is True

        assert ids(feed) == [1]
        assert seeded.find_by_id(2).is_read is True
        # the order itself is kept
        assert seeded.find_by_id(2).status == OrderStatus.PENDING

    def test_mark_read_twice_is_a_noop(self, feed, seeded):
        feed.mark_read(2)

        assert feed.mark_read(2) is False
        assert seeded.mark_read_calls == 1

    def test_feed_echo_keeps_it_hidden(self, feed):
        feed.mark_read(2)
        feed.sync()

        assert ids(feed) == [1]

    def test_failed_write_keeps_notification(self, feed, seeded, monkeypatch):
        def unavailable(order_id):
            raise PersistenceError()

        monkeypatch.setattr(seeded, "mark_read", unavailable)

        with pytest.raises(PersistenceError):
            feed.mark_read(2)
        assert ids(feed) == [2, 1]

    def test_mark_all_read(self, feed, seeded):
        assert feed.mark_all_read() == 2

        assert feed.notifications == []
        assert seeded.find_unread() == []

    def test_mark_all_read_when_empty(self, feed):
        feed.mark_all_read()
        assert feed.mark_all_read() == 0


class TestLegacyOrders:

    @pytest.fixture
    def with_legacy(self, seeded, order_factory):
        seeded.insert(order_factory(5, minutes=30, is_read=None))
        seeded.insert(order_factory(6, minutes=40, is_read=None, status=OrderStatus.SHIPPED))
        return seeded

    def test_pending_legacy_orders_are_merged(self, with_legacy):
        aggregator = NotificationAggregator(with_legacy, include_legacy=True)
        aggregator.start()

        assert ids(aggregator) == [5, 2, 1]

    def test_legacy_excluded_when_disabled(self, with_legacy):
        aggregator = NotificationAggregator(with_legacy, include_legacy=False)
        aggregator.start()

        assert ids(aggregator) == [2, 1]

    def test_legacy_failure_falls_back_to_live(self, with_legacy):
        with_legacy.fail_legacy = True
        aggregator = NotificationAggregator(with_legacy, include_legacy=True)

        assert aggregator.start()
        assert ids(aggregator) == [2, 1]
        assert aggregator.error is None

    def test_duplicates_collapse(self, seeded, order_factory, monkeypatch):
        monkeypatch.setattr(seeded, "find_legacy_unread", lambda: [order_factory(2, minutes=10)])
        aggregator = NotificationAggregator(seeded, include_legacy=True)
        aggregator.start()

        assert ids(aggregator) == [2, 1]

    def test_legacy_mark_read_sets_flag(self, with_legacy):
        aggregator = NotificationAggregator(with_legacy, include_legacy=True)
        aggregator.start()

        aggregator.mark_read(5)
        aggregator.sync()

        assert with_legacy.find_by_id(5).is_read is True
        assert ids(aggregator) == [2, 1]


class TestFeedFailures:

    def test_subscribe_failure(self, seeded):
        seeded.fail_subscribe = True
        aggregator = NotificationAggregator(seeded, include_legacy=False)

        assert aggregator.start() is False
        assert isinstance(aggregator.error, NotificationSyncError)
        assert not aggregator.is_live

    def test_stream_error_keeps_known_notifications(self, feed, seeded):
        seeded.subscriptions[0].fail()

        feed.sync(timeout=1)

        assert isinstance(feed.error, NotificationSyncError)
        assert not feed.is_live
        assert seeded.subscriptions[0].released
        assert ids(feed) == [2, 1]

    def test_retry_reconnects(self, feed, seeded, order_factory):
        seeded.subscriptions[0].fail()
        feed.sync()
        seeded.insert(order_factory(4, minutes=20))

        assert feed.retry()

        assert feed.error is None
        assert ids(feed) == [4, 2, 1]

    def test_refresh_without_feed(self, seeded):
        aggregator = NotificationAggregator(seeded, include_legacy=False)
        aggregator.refresh()

        assert ids(aggregator) == [2, 1]
        assert not aggregator.is_live


class TestLifecycle:

    def test_close_releases_subscription(self, feed, seeded):
        feed.close()

        assert not feed.is_live
        assert seeded.subscriptions[0].released

    def test_context_manager(self, seeded):
        with NotificationAggregator(seeded, include_legacy=False) as aggregator:
            aggregator.start()
        assert seeded.subscriptions[0].cancelled

    def test_run_returns_once_closed(self, feed):
        feed.close()
        feed.run()
