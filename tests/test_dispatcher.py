"""Unit tests for notification fan-out."""

from unittest.mock import MagicMock, patch

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from arriva.errors import ChannelDeliveryError
from arriva.ingestion.changes import StatusChange
from arriva.models import NotificationLog, Profile
from arriva.models.notification import Channel
from arriva.services.dispatcher import NotificationDispatcher, Subscriber

from conftest import add_subscription, make_record


def _change(flight_id: str = "Q2 707", old: str = "DELAYED", new: str = "LANDED") -> StatusChange:
    return StatusChange(record=make_record(flight_id, status=new), old_status=old, new_status=new)


def _channels(**overrides) -> dict:
    channels = {channel: MagicMock(name=channel.value) for channel in Channel}
    for name, mock in overrides.items():
        channels[Channel(name)] = mock
    return channels


def _log_entries(session_factory) -> list:
    with session_factory() as session:
        return session.scalars(select(NotificationLog).order_by(NotificationLog.channel)).all()


class TestDispatch:
    """Tests for NotificationDispatcher.dispatch."""

    def test_channel_failures_are_isolated(self, session_factory) -> None:
        sub_id = add_subscription(
            session_factory,
            notify_sms=True,
            notify_email=True,
            notify_push=False,
            phone="+9607771234",
            email="traveller@example.com",
            push_token="token-abc",
        )
        sms = MagicMock()
        sms.send.side_effect = ChannelDeliveryError("carrier down", status_code=503)
        channels = _channels(sms=sms)
        dispatcher = NotificationDispatcher(session_factory, channels)

        report = dispatcher.dispatch([_change()])

        entries = _log_entries(session_factory)
        assert [(e.channel, e.success) for e in entries] == [("email", True), ("sms", False)]
        assert all(e.subscription_id == sub_id for e in entries)
        assert all(e.status_change == "DELAYED → LANDED" for e in entries)
        assert entries[1].error_message == "carrier down"
        channels[Channel.PUSH].send.assert_not_called()
        assert report.sent == 1
        assert report.failed == 1

    def test_message_and_destination_passed_to_adapter(self, session_factory) -> None:
        add_subscription(session_factory, notify_email=True, email="traveller@example.com")
        channels = _channels()
        dispatcher = NotificationDispatcher(session_factory, channels)
        change = _change()

        dispatcher.dispatch([change])

        channels[Channel.EMAIL].send.assert_called_once_with(
            "traveller@example.com",
            "Flight Q2 707 from Cochin: Status changed from DELAYED to LANDED",
            change,
        )

    def test_no_subscribers_writes_nothing(self, session_factory) -> None:
        add_subscription(session_factory, flight_id="EK 652", notify_sms=True, phone="+9607771234")
        channels = _channels()
        dispatcher = NotificationDispatcher(session_factory, channels)

        report = dispatcher.dispatch([_change("Q2 707")])

        assert report.results == []
        assert _log_entries(session_factory) == []
        channels[Channel.SMS].send.assert_not_called()

    def test_enabled_channel_without_contact_is_not_attempted(self, session_factory) -> None:
        add_subscription(session_factory, notify_sms=True, notify_push=True, phone=None, push_token=None)
        channels = _channels()
        dispatcher = NotificationDispatcher(session_factory, channels)

        report = dispatcher.dispatch([_change()])

        assert report.results == []
        assert _log_entries(session_factory) == []

    def test_unconfigured_channel_skipped_and_reported(self, session_factory) -> None:
        add_subscription(
            session_factory,
            notify_sms=True,
            notify_email=True,
            phone="+9607771234",
            email="traveller@example.com",
        )
        channels = _channels()
        del channels[Channel.SMS]
        dispatcher = NotificationDispatcher(
            session_factory,
            channels,
            skipped_channels={Channel.SMS: "Twilio credentials not configured"},
        )

        report = dispatcher.dispatch([_change()])

        assert [e.channel for e in _log_entries(session_factory)] == ["email"]
        assert report.to_dict()["skipped_channels"] == {"sms": "Twilio credentials not configured"}

    def test_unexpected_adapter_error_is_contained(self, session_factory) -> None:
        add_subscription(session_factory, user_id="a", notify_email=True, email="a@example.com")
        add_subscription(session_factory, user_id="b", notify_email=True, email="b@example.com")
        email = MagicMock()
        email.send.side_effect = [RuntimeError("template bug"), None]
        dispatcher = NotificationDispatcher(session_factory, _channels(email=email), max_workers=1)

        report = dispatcher.dispatch([_change()])

        assert sorted(r.success for r in report.results) == [False, True]
        failed = next(r for r in report.results if not r.success)
        assert "template bug" in failed.error
        assert len(_log_entries(session_factory)) == 2

    def test_every_subscriber_of_every_change_notified(self, session_factory) -> None:
        add_subscription(session_factory, user_id="a", flight_id="Q2 707", notify_sms=True, phone="+1")
        add_subscription(session_factory, user_id="b", flight_id="Q2 707", notify_sms=True, phone="+2")
        add_subscription(session_factory, user_id="c", flight_id="EK 652", notify_sms=True, phone="+3")
        channels = _channels()
        dispatcher = NotificationDispatcher(session_factory, channels, max_workers=2)

        report = dispatcher.dispatch([_change("Q2 707"), _change("EK 652")])

        assert report.sent == 3
        destinations = {c[0][0] for c in channels[Channel.SMS].send.call_args_list}
        assert destinations == {"+1", "+2", "+3"}

    def test_failed_lookup_only_drops_that_change(self, session_factory) -> None:
        add_subscription(session_factory, user_id="a", flight_id="Q2 707", notify_sms=True, phone="+1")
        add_subscription(session_factory, user_id="b", flight_id="EK 652", notify_sms=True, phone="+2")
        channels = _channels()
        dispatcher = NotificationDispatcher(session_factory, channels)
        real_lookup = dispatcher.load_subscribers

        def lookup(flight_id: str, flight_date: str) -> list:
            if flight_id == "Q2 707":
                raise OperationalError("SELECT", {}, Exception("database is locked"))
            return real_lookup(flight_id, flight_date)

        with patch.object(dispatcher, "load_subscribers", side_effect=lookup):
            report = dispatcher.dispatch([_change("Q2 707"), _change("EK 652")])

        channels[Channel.SMS].send.assert_called_once()
        assert channels[Channel.SMS].send.call_args[0][0] == "+2"
        assert report.sent == 1
        assert len(report.lookup_errors) == 1
        assert "Q2 707" in report.lookup_errors[0]
        assert "database is locked" in report.to_dict()["lookup_errors"][0]

    def test_empty_changes(self, session_factory) -> None:
        dispatcher = NotificationDispatcher(session_factory, _channels())
        report = dispatcher.dispatch([])
        assert report.results == []


class TestPushTokenInvalidation:
    """Tests for 410 Gone handling."""

    def test_gone_clears_push_token_and_logs_failure(self, session_factory) -> None:
        add_subscription(session_factory, notify_push=True, push_token="token-abc")
        push = MagicMock()
        push.send.side_effect = ChannelDeliveryError("NotRegistered", status_code=410)
        dispatcher = NotificationDispatcher(session_factory, _channels(push=push))

        report = dispatcher.dispatch([_change()])

        with session_factory() as session:
            assert session.get(Profile, "user-1").push_token is None
        entries = _log_entries(session_factory)
        assert [(e.channel, e.success) for e in entries] == [("push", False)]
        assert report.cleared_push_tokens == 1

    def test_bad_log_row_does_not_undo_other_writes(self, session_factory) -> None:
        sub_id = add_subscription(session_factory, notify_push=True, push_token="token-abc")
        real = Subscriber(subscription_id=sub_id, user_id="user-1", notify_push=True, push_token="token-abc")
        # Subscription removed while the batch was in flight
        deleted = Subscriber(subscription_id=999, user_id="ghost", notify_sms=True, phone="+0")
        push = MagicMock()
        push.send.side_effect = ChannelDeliveryError("NotRegistered", status_code=410)
        dispatcher = NotificationDispatcher(session_factory, _channels(push=push))

        with patch.object(dispatcher, "load_subscribers", return_value=[deleted, real]):
            report = dispatcher.dispatch([_change()])

        entries = _log_entries(session_factory)
        assert [(e.subscription_id, e.channel) for e in entries] == [(sub_id, "push")]
        assert report.log_error is not None
        assert report.cleared_push_tokens == 1
        with session_factory() as session:
            assert session.get(Profile, "user-1").push_token is None

    def test_other_push_failure_keeps_token(self, session_factory) -> None:
        add_subscription(session_factory, notify_push=True, push_token="token-abc")
        push = MagicMock()
        push.send.side_effect = ChannelDeliveryError("Unavailable", status_code=503)
        dispatcher = NotificationDispatcher(session_factory, _channels(push=push))

        report = dispatcher.dispatch([_change()])

        with session_factory() as session:
            assert session.get(Profile, "user-1").push_token == "token-abc"
        assert report.cleared_push_tokens == 0
