"""Tests for distribution group validation and the distribution engine."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from app.models.distribution_record import DistributionRecord
from app.models.tip import TipStatus, TipType
from app.repositories.tip_repository import TipRepository
from app.repositories.waiter_repository import WaiterRepository
from app.schemas.distribution import DistributionGroupConfig
from app.services.distribution_service import (
    DistributionService,
    default_groups,
    validate_groups,
)
from app.services.errors import DistributionValidationError
from tests.conftest import DEFAULT_RESTAURANT_ID


def _groups(*pairs):
    return [DistributionGroupConfig(group_name=n, percentage=Decimal(p)) for n, p in pairs]


def _completed_restaurant_tip(db_session, net, created_at=None, **fields):
    return TipRepository(db_session).create(
        restaurant_id=DEFAULT_RESTAURANT_ID,
        amount=Decimal(net),
        commission_amount=Decimal("0"),
        net_amount=Decimal(net),
        tip_type=TipType.RESTAURANT.value,
        payment_status=TipStatus.COMPLETED.value,
        created_at=created_at or datetime(2026, 9, 10, 12, 0, tzinfo=UTC),
        **fields,
    )


@pytest.fixture
def service(db_session):
    return DistributionService(db_session)


class TestValidateGroups:
    def test_default_groups_are_valid(self):
        result = validate_groups(default_groups())
        assert result.is_valid
        assert result.errors == []
        assert result.total_percentage == Decimal("100.00")

    def test_default_group_names(self):
        assert [g.group_name for g in default_groups()] == [
            "Waiters",
            "Kitchen Staff",
            "Cleaners",
            "Management",
        ]

    def test_empty_set_is_invalid(self):
        result = validate_groups([])
        assert not result.is_valid
        assert result.errors == ["At least one distribution group is required"]

    def test_total_must_be_hundred(self):
        result = validate_groups(_groups(("Waiters", "60"), ("Kitchen", "30")))
        assert not result.is_valid
        assert "Total percentage must equal 100% (currently 90.00%)" in result.errors

    def test_total_within_tolerance(self):
        result = validate_groups(
            _groups(("A", "33.33"), ("B", "33.33"), ("C", "33.33"))
        )
        assert result.is_valid

    def test_duplicate_names_case_insensitive(self):
        result = validate_groups(_groups(("Waiters", "50"), ("waiters", "50")))
        assert not result.is_valid
        assert "Duplicate group names found: waiters" in result.errors

    def test_reports_every_problem(self):
        result = validate_groups(_groups(("", "-5"), ("B" * 51, "120")))
        assert not result.is_valid
        assert "Group 1: Group name is required" in result.errors
        assert "Group 1: Percentage cannot be negative" in result.errors
        assert "Group 2: Group name must be 50 characters or less" in result.errors
        assert "Group 2: Percentage cannot exceed 100%" in result.errors

    def test_too_many_decimal_places(self):
        result = validate_groups(_groups(("A", "50.005"), ("B", "49.995")))
        assert "Group 1: Percentage can have at most 2 decimal places" in result.errors


class TestUpdateGroups:
    def test_replaces_group_set(self, service):
        service.update_groups(DEFAULT_RESTAURANT_ID, default_groups())
        groups = service.update_groups(
            DEFAULT_RESTAURANT_ID, _groups(("Floor", "70"), ("Kitchen", "30"))
        )
        assert [(g.group_name, Decimal(str(g.percentage))) for g in groups] == [
            ("Floor", Decimal("70")),
            ("Kitchen", Decimal("30")),
        ]

    def test_strips_names(self, service):
        groups = service.update_groups(DEFAULT_RESTAURANT_ID, _groups(("  Floor  ", "100")))
        assert groups[0].group_name == "Floor"

    def test_invalid_set_writes_nothing(self, service):
        service.update_groups(DEFAULT_RESTAURANT_ID, default_groups())
        with pytest.raises(DistributionValidationError) as exc_info:
            service.update_groups(DEFAULT_RESTAURANT_ID, _groups(("Floor", "70")))
        assert exc_info.value.errors == ["Total percentage must equal 100% (currently 70.00%)"]
        assert len(service.get_groups(DEFAULT_RESTAURANT_ID)) == 4

    @pytest.mark.parametrize("floor", ["59", "61"])
    def test_total_off_by_one_point_writes_nothing(self, service, floor):
        service.update_groups(DEFAULT_RESTAURANT_ID, default_groups())
        before = [
            (g.group_name, Decimal(str(g.percentage)))
            for g in service.get_groups(DEFAULT_RESTAURANT_ID)
        ]

        with pytest.raises(DistributionValidationError) as exc_info:
            service.update_groups(
                DEFAULT_RESTAURANT_ID, _groups(("Floor", floor), ("Kitchen", "40"))
            )

        total = Decimal(floor) + 40
        assert exc_info.value.errors == [
            f"Total percentage must equal 100% (currently {total:.2f}%)"
        ]
        after = [
            (g.group_name, Decimal(str(g.percentage)))
            for g in service.get_groups(DEFAULT_RESTAURANT_ID)
        ]
        assert after == before


class TestCalculateDistribution:
    def test_preview_uses_current_groups(self, service):
        service.update_groups(DEFAULT_RESTAURANT_ID, default_groups())
        preview = service.calculate_distribution(DEFAULT_RESTAURANT_ID, Decimal("900.00"))
        shares = {s.group_name: s.amount for s in preview.distributions}
        assert shares == {
            "Waiters": Decimal("540.00"),
            "Kitchen Staff": Decimal("180.00"),
            "Cleaners": Decimal("90.00"),
            "Management": Decimal("90.00"),
        }
        assert preview.total_distributed == Decimal("900.00")

    def test_preview_without_groups(self, service):
        preview = service.calculate_distribution(DEFAULT_RESTAURANT_ID, Decimal("100"))
        assert preview.distributions == []
        assert preview.total_distributed == Decimal("0")


class TestDistribute:
    def test_writes_one_record_per_group(self, db_session, service):
        service.update_groups(DEFAULT_RESTAURANT_ID, default_groups())
        tip = _completed_restaurant_tip(db_session, "900.00")

        records = service.distribute(tip)

        assert {r.group_name: r.amount for r in records} == {
            "Waiters": Decimal("540.00"),
            "Kitchen Staff": Decimal("180.00"),
            "Cleaners": Decimal("90.00"),
            "Management": Decimal("90.00"),
        }
        assert all(r.restaurant_id == DEFAULT_RESTAURANT_ID for r in records)

    def test_distributing_twice_is_a_no_op(self, db_session, service):
        service.update_groups(DEFAULT_RESTAURANT_ID, default_groups())
        tip = _completed_restaurant_tip(db_session, "900.00")

        first = service.distribute(tip)
        second = service.distribute(tip)

        assert {r.id for r in first} == {r.id for r in second}
        assert db_session.query(DistributionRecord).count() == 4

    def test_records_keep_percentages_of_the_day(self, db_session, service):
        service.update_groups(DEFAULT_RESTAURANT_ID, default_groups())
        tip = _completed_restaurant_tip(db_session, "100.00")
        service.distribute(tip)

        service.update_groups(DEFAULT_RESTAURANT_ID, _groups(("Waiters", "100")))
        records = service.distribute(tip)

        assert len(records) == 4
        waiters = next(r for r in records if r.group_name == "Waiters")
        assert Decimal(str(waiters.percentage)) == Decimal("60")

    def test_waiter_tip_is_not_distributed(self, db_session, service):
        service.update_groups(DEFAULT_RESTAURANT_ID, default_groups())
        waiter = WaiterRepository(db_session).create(DEFAULT_RESTAURANT_ID, "Amina")
        tip = TipRepository(db_session).create(
            restaurant_id=DEFAULT_RESTAURANT_ID,
            waiter_id=waiter.id,
            amount=Decimal("100"),
            net_amount=Decimal("90"),
            tip_type=TipType.WAITER.value,
            payment_status=TipStatus.COMPLETED.value,
        )
        assert service.distribute(tip) == []

    def test_pending_tip_is_rejected(self, db_session, service):
        service.update_groups(DEFAULT_RESTAURANT_ID, default_groups())
        tip = _completed_restaurant_tip(
            db_session, "100.00", correlation_id="ws_CO_1"
        )
        tip.payment_status = TipStatus.PENDING.value
        db_session.commit()
        with pytest.raises(ValueError, match="not completed"):
            service.distribute(tip)

    def test_no_groups_configured(self, db_session, service):
        tip = _completed_restaurant_tip(db_session, "100.00")
        with pytest.raises(ValueError, match="no distribution groups"):
            service.distribute(tip)


class TestSummary:
    def test_summary_filters_by_tip_date(self, db_session, service):
        service.update_groups(DEFAULT_RESTAURANT_ID, _groups(("Floor", "50"), ("Kitchen", "50")))
        september = _completed_restaurant_tip(
            db_session, "200.00", created_at=datetime(2026, 9, 5, tzinfo=UTC)
        )
        october = _completed_restaurant_tip(
            db_session, "400.00", created_at=datetime(2026, 10, 5, tzinfo=UTC)
        )
        service.distribute(september)
        service.distribute(october)

        summary = service.get_summary(
            DEFAULT_RESTAURANT_ID,
            start=datetime(2026, 9, 1, tzinfo=UTC),
            end=datetime(2026, 10, 1, tzinfo=UTC),
        )

        assert {(s.group_name, s.tip_count, s.total_amount) for s in summary} == {
            ("Floor", 1, Decimal("100.00")),
            ("Kitchen", 1, Decimal("100.00")),
        }

    def test_summary_all_time(self, db_session, service):
        service.update_groups(DEFAULT_RESTAURANT_ID, _groups(("Floor", "100")))
        service.distribute(_completed_restaurant_tip(db_session, "10.00"))
        service.distribute(_completed_restaurant_tip(db_session, "15.50"))

        summary = service.get_summary(DEFAULT_RESTAURANT_ID)

        assert len(summary) == 1
        assert summary[0].tip_count == 2
        assert summary[0].total_amount == Decimal("25.50")
