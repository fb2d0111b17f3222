"""Tests for payout notification scheduling."""

from datetime import date
from decimal import Decimal

import pytest

from app.models.notification import NotificationKind, PayoutNotification
from app.models.payout import Payout, PayoutStatus, RecipientType
from app.models.tip import Tip, TipType
from app.repositories.restaurant_repository import RestaurantRepository
from app.repositories.waiter_repository import WaiterRepository
from app.services.notification_service import (
    PayoutNotificationScheduler,
    last_day_of_month,
    needs_upcoming_notice,
    notification_date,
    payout_template,
)
from tests.conftest import DEFAULT_RESTAURANT_ID

SEPTEMBER = date(2026, 9, 1)


@pytest.fixture
def scheduler(db_session):
    return PayoutNotificationScheduler(db_session)


@pytest.fixture
def waiter(db_session):
    return WaiterRepository(db_session).create(
        DEFAULT_RESTAURANT_ID, "Amina", phone_number="0712345678"
    )


def _payout(db_session, waiter=None, group_name=None, status=PayoutStatus.PENDING, **fields):
    payout = Payout(
        restaurant_id=DEFAULT_RESTAURANT_ID,
        recipient_type=(RecipientType.WAITER if waiter else RecipientType.GROUP).value,
        waiter_id=waiter.id if waiter else None,
        group_name=group_name,
        recipient_key=str(waiter.id) if waiter else group_name,
        amount=Decimal("1350.00"),
        tip_count=2,
        payout_month=SEPTEMBER,
        status=status.value,
        **fields,
    )
    db_session.add(payout)
    db_session.commit()
    db_session.refresh(payout)
    return payout


class TestScheduleHelpers:
    def test_last_day_of_month(self):
        assert last_day_of_month(date(2026, 2, 1)) == date(2026, 2, 28)
        assert last_day_of_month(date(2028, 2, 1)) == date(2028, 2, 29)
        assert last_day_of_month(date(2026, 12, 1)) == date(2026, 12, 31)

    def test_notification_date(self):
        assert notification_date(SEPTEMBER, 3) == date(2026, 9, 27)
        assert notification_date(SEPTEMBER, 0) == date(2026, 9, 30)

    def test_needs_upcoming_notice(self, db_session, waiter):
        payout = _payout(db_session, waiter)
        assert needs_upcoming_notice(payout, date(2026, 9, 27), 3)
        assert not needs_upcoming_notice(payout, date(2026, 9, 26), 3)

    def test_only_pending_payouts_need_notice(self, db_session, waiter):
        payout = _payout(db_session, waiter, status=PayoutStatus.COMPLETED)
        assert not needs_upcoming_notice(payout, date(2026, 9, 27), 3)


class TestTemplates:
    def test_upcoming(self):
        template = payout_template(
            NotificationKind.UPCOMING, Decimal("1350"), "Amina", date(2026, 9, 30)
        )
        assert template.subject == "Upcoming Tip Payout Notification"
        assert "KES 1350.00" in template.message
        assert "30/09/2026" in template.message

    def test_processed(self):
        template = payout_template(NotificationKind.PROCESSED, Decimal("180"), "Brian")
        assert template.subject == "Tip Payout Processed Successfully"
        assert template.message.startswith("Hello Brian, your tip payout of KES 180.00")

    def test_failed(self):
        template = payout_template(NotificationKind.FAILED, Decimal("180"), "Brian")
        assert template.subject == "Tip Payout Failed"
        assert "contact support" in template.message

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            payout_template(NotificationKind.TIP_CONFIRMED, Decimal("1"), "x")


class TestQueueUpcoming:
    def test_queues_on_notification_date(self, db_session, scheduler, waiter):
        _payout(db_session, waiter)
        _payout(db_session, group_name="Kitchen Staff")

        result = scheduler.queue_upcoming(date(2026, 9, 27))

        assert result.queued == 2
        notices = {n.recipient_name: n for n in db_session.query(PayoutNotification).all()}
        assert notices["Amina"].recipient == "0712345678"
        assert notices["Kitchen Staff"].recipient == "owner@restaurant.test"
        assert all(n.kind == "upcoming" for n in notices.values())

    def test_second_run_is_deduplicated(self, db_session, scheduler, waiter):
        _payout(db_session, waiter)
        scheduler.queue_upcoming(date(2026, 9, 27))

        result = scheduler.queue_upcoming(date(2026, 9, 27))

        assert result.queued == 0
        assert result.already_queued == 1
        assert db_session.query(PayoutNotification).count() == 1

    def test_other_days_queue_nothing(self, db_session, scheduler, waiter):
        _payout(db_session, waiter)
        assert scheduler.queue_upcoming(date(2026, 9, 26)).queued == 0

    def test_respects_restaurant_notice_days(self, db_session, scheduler, waiter):
        restaurant = RestaurantRepository(db_session).get_by_id(DEFAULT_RESTAURANT_ID)
        RestaurantRepository(db_session).update_payout_schedule(restaurant, notification_days=5)
        _payout(db_session, waiter)

        assert scheduler.queue_upcoming(date(2026, 9, 27)).queued == 0
        assert scheduler.queue_upcoming(date(2026, 9, 25)).queued == 1

    def test_disabled_schedule(self, db_session, scheduler, waiter):
        restaurant = RestaurantRepository(db_session).get_by_id(DEFAULT_RESTAURANT_ID)
        RestaurantRepository(db_session).update_payout_schedule(restaurant, enabled=False)
        _payout(db_session, waiter)

        assert scheduler.queue_upcoming(date(2026, 9, 27)).queued == 0

    def test_single_restaurant(self, db_session, scheduler, waiter):
        _payout(db_session, waiter)
        other = RestaurantRepository(db_session).create("Second Kitchen")

        assert scheduler.queue_upcoming(date(2026, 9, 27), restaurant_id=other.id).queued == 0
        assert (
            scheduler.queue_upcoming(date(2026, 9, 27), restaurant_id=DEFAULT_RESTAURANT_ID).queued
            == 1
        )


class TestNotifyStatus:
    def test_processed_notice(self, db_session, scheduler, waiter):
        payout = _payout(db_session, waiter, status=PayoutStatus.COMPLETED, attempts=1)

        notice = scheduler.notify_status(payout)

        assert notice.kind == "processed"
        assert notice.payout_id == payout.id
        assert notice.dedupe_key == f"processed:{payout.id}:1"

    def test_same_attempt_is_deduplicated(self, db_session, scheduler, waiter):
        payout = _payout(db_session, waiter, status=PayoutStatus.FAILED, attempts=1)
        scheduler.notify_status(payout)

        assert scheduler.notify_status(payout) is None
        assert db_session.query(PayoutNotification).count() == 1

    def test_non_terminal_status(self, db_session, scheduler, waiter):
        payout = _payout(db_session, waiter, status=PayoutStatus.PROCESSING)
        assert scheduler.notify_status(payout) is None


class TestTipConfirmed:
    def _tip(self, db_session, waiter=None, **fields):
        tip = Tip(
            restaurant_id=DEFAULT_RESTAURANT_ID,
            waiter_id=waiter.id if waiter else None,
            amount=Decimal("500.00"),
            tip_type=(TipType.WAITER if waiter else TipType.RESTAURANT).value,
            payment_status="completed",
            **fields,
        )
        db_session.add(tip)
        db_session.commit()
        db_session.refresh(tip)
        return tip

    def test_waiter_tip_receipt(self, db_session, scheduler, waiter):
        tip = self._tip(db_session, waiter, payer_phone="254700000001", receipt_id="QKJ7ABC123")

        notice = scheduler.notify_tip_confirmed(tip)

        assert notice.recipient == "254700000001"
        assert notice.subject == "Tip Payment Confirmed"
        assert "KES 500.00 for Amina (waiter)" in notice.message
        assert "Receipt: QKJ7ABC123." in notice.message

    def test_restaurant_tip_names_restaurant(self, db_session, scheduler):
        tip = self._tip(db_session, payer_phone="254700000001")

        notice = scheduler.notify_tip_confirmed(tip)

        assert "for Default Test Restaurant (restaurant)" in notice.message
        assert "Receipt" not in notice.message

    def test_once_per_tip(self, db_session, scheduler, waiter):
        tip = self._tip(db_session, waiter, payer_phone="254700000001")
        scheduler.notify_tip_confirmed(tip)

        assert scheduler.notify_tip_confirmed(tip) is None

    def test_no_payer_phone(self, db_session, scheduler, waiter):
        assert scheduler.notify_tip_confirmed(self._tip(db_session, waiter)) is None
