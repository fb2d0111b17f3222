"""Payout notification scheduling.

Decides when upcoming, processed and failed payout notices are due and
queues them as notification intents. Delivery (SMS, email) belongs to the
messaging collaborator that drains the ``payout_notifications`` table.
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.notification import NotificationKind, PayoutNotification
from app.models.payout import Payout, PayoutStatus, RecipientType
from app.models.restaurant import Restaurant
from app.models.tip import Tip, TipType
from app.repositories.notification_repository import NotificationRepository
from app.repositories.payout_repository import PayoutRepository
from app.repositories.restaurant_repository import RestaurantRepository
from app.repositories.waiter_repository import WaiterRepository

logger = logging.getLogger(__name__)


def last_day_of_month(month: date) -> date:
    return month.replace(day=calendar.monthrange(month.year, month.month)[1])


def notification_date(month: date, days_before: int) -> date:
    """The day upcoming-payout notices go out: month end minus ``days_before``."""
    return last_day_of_month(month) - timedelta(days=days_before)


def needs_upcoming_notice(payout: Payout, today: date, days_before: int) -> bool:
    if payout.status != PayoutStatus.PENDING.value:
        return False
    return today == notification_date(payout.payout_month, days_before)  # type: ignore[arg-type]


def format_amount(amount: Decimal) -> str:
    return f"{settings.CURRENCY} {Decimal(str(amount)):.2f}"


@dataclass(frozen=True)
class NotificationTemplate:
    kind: NotificationKind
    subject: str
    message: str


def payout_template(
    kind: NotificationKind, amount: Decimal, recipient: str, payout_date: date | None = None
) -> NotificationTemplate:
    formatted = format_amount(amount)
    if kind == NotificationKind.UPCOMING:
        when = payout_date.strftime("%d/%m/%Y") if payout_date else "the scheduled date"
        return NotificationTemplate(
            kind=kind,
            subject="Upcoming Tip Payout Notification",
            message=(
                f"Hello {recipient}, your tip payout of {formatted} will be processed on "
                f"{when}. Ensure your phone number is active to receive the payment."
            ),
        )
    if kind == NotificationKind.PROCESSED:
        return NotificationTemplate(
            kind=kind,
            subject="Tip Payout Processed Successfully",
            message=(
                f"Hello {recipient}, your tip payout of {formatted} has been processed "
                "successfully. You should receive the payment shortly on your registered "
                "phone number."
            ),
        )
    if kind == NotificationKind.FAILED:
        return NotificationTemplate(
            kind=kind,
            subject="Tip Payout Failed",
            message=(
                f"Hello {recipient}, we encountered an issue processing your tip payout of "
                f"{formatted}. Please contact support or ensure your phone number is correct "
                "and active."
            ),
        )
    raise ValueError(f"Unknown payout notification kind: {kind}")


@dataclass
class UpcomingNoticeResult:
    date: date
    queued: int = 0
    already_queued: int = 0


class PayoutNotificationScheduler:
    def __init__(self, db: Session):
        self.db = db
        self.repo = NotificationRepository(db)
        self.payout_repo = PayoutRepository(db)
        self.restaurant_repo = RestaurantRepository(db)
        self.waiter_repo = WaiterRepository(db)

    def _recipient(self, payout: Payout, restaurant: Restaurant) -> tuple[str | None, str]:
        """(contact, display name) for a payout's notice."""
        if payout.recipient_type == RecipientType.WAITER.value and payout.waiter_id:
            waiter = self.waiter_repo.get_by_id(payout.waiter_id, payout.restaurant_id)  # type: ignore[arg-type]
            if waiter is not None:
                return waiter.phone_number or waiter.email, str(waiter.name)  # type: ignore[return-value]
            return None, "recipient"
        # Group payouts are announced to the restaurant.
        return (
            restaurant.email or restaurant.phone_number,  # type: ignore[return-value]
            str(payout.group_name or "Distribution Group"),
        )

    def _queue(
        self,
        payout: Payout,
        restaurant: Restaurant,
        kind: NotificationKind,
        dedupe_key: str,
        payout_date: date | None = None,
    ) -> PayoutNotification | None:
        contact, name = self._recipient(payout, restaurant)
        template = payout_template(kind, payout.amount, name, payout_date)  # type: ignore[arg-type]
        return self.repo.create_once(
            dedupe_key,
            restaurant_id=payout.restaurant_id,
            payout_id=payout.id,
            kind=kind.value,
            recipient=contact,
            recipient_name=name,
            subject=template.subject,
            message=template.message,
        )

    def queue_upcoming(self, today: date, restaurant_id: UUID | None = None) -> UpcomingNoticeResult:
        """Queue one upcoming notice per pending payout whose notice date is today."""
        result = UpcomingNoticeResult(date=today)
        if restaurant_id is not None:
            found = self.restaurant_repo.get_by_id(restaurant_id)
            restaurants = [found] if found else []
        else:
            restaurants = self.restaurant_repo.get_active()

        month = today.replace(day=1)
        for restaurant in restaurants:
            if not restaurant.payout_schedule_enabled:
                continue
            days_before = restaurant.payout_notification_days
            if days_before is None:
                days_before = settings.PAYOUT_NOTIFICATION_DAYS
            if notification_date(month, days_before) != today:  # type: ignore[arg-type]
                continue
            payouts = self.payout_repo.get_all(
                restaurant.id,  # type: ignore[arg-type]
                payout_month=month,
                status=PayoutStatus.PENDING,
                limit=10_000,
            )
            for payout in payouts:
                if not needs_upcoming_notice(payout, today, days_before):  # type: ignore[arg-type]
                    continue
                queued = self._queue(
                    payout,
                    restaurant,
                    NotificationKind.UPCOMING,
                    f"upcoming:{payout.id}",
                    payout_date=last_day_of_month(month),
                )
                if queued is None:
                    result.already_queued += 1
                else:
                    result.queued += 1

        logger.info(
            "Upcoming payout notices for %s: %d queued, %d already queued",
            today,
            result.queued,
            result.already_queued,
        )
        return result

    def notify_status(self, payout: Payout) -> PayoutNotification | None:
        """Queue the processed/failed notice for a payout's terminal transition.

        The attempt number is part of the key, so a retried payout gets a new
        notice while a replayed callback does not.
        """
        if payout.status == PayoutStatus.COMPLETED.value:
            kind = NotificationKind.PROCESSED
        elif payout.status == PayoutStatus.FAILED.value:
            kind = NotificationKind.FAILED
        else:
            return None
        restaurant = self.restaurant_repo.get_by_id(payout.restaurant_id)  # type: ignore[arg-type]
        if restaurant is None:
            return None
        return self._queue(
            payout, restaurant, kind, f"{kind.value}:{payout.id}:{payout.attempts}"
        )

    def notify_tip_confirmed(self, tip: Tip) -> PayoutNotification | None:
        """Queue the payer's receipt message for a completed tip."""
        if not tip.payer_phone:
            return None
        restaurant = self.restaurant_repo.get_by_id(tip.restaurant_id)  # type: ignore[arg-type]
        if restaurant is None:
            return None

        recipient = str(restaurant.name)
        if tip.tip_type == TipType.WAITER.value and tip.waiter_id:
            waiter = self.waiter_repo.get_by_id(tip.waiter_id, tip.restaurant_id)  # type: ignore[arg-type]
            if waiter is not None:
                recipient = str(waiter.name)
        message = (
            f"Thank you! Your tip of {format_amount(tip.amount)} for {recipient} "  # type: ignore[arg-type]
            f"({tip.tip_type}) has been confirmed."
        )
        if tip.receipt_id:
            message += f" Receipt: {tip.receipt_id}."
        message += " Your generosity is appreciated!"

        return self.repo.create_once(
            f"tip_confirmed:{tip.id}",
            restaurant_id=tip.restaurant_id,
            tip_id=tip.id,
            kind=NotificationKind.TIP_CONFIRMED.value,
            recipient=tip.payer_phone,
            recipient_name=None,
            subject="Tip Payment Confirmed",
            message=message,
        )
