"""Tests for the restaurant-scoped API endpoints."""

from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.models.audit_log import AuditLog
from app.models.payout import Payout, PayoutStatus, RecipientType
from app.models.tip import TipStatus, TipType
from app.repositories.tip_repository import TipRepository
from app.repositories.waiter_repository import WaiterRepository
from tests.conftest import DEFAULT_RESTAURANT_ID

BASE_URL = f"/v1/restaurants/{DEFAULT_RESTAURANT_ID}"
SEPTEMBER = datetime(2026, 9, 12, 18, 30, tzinfo=UTC)

GROUPS = {
    "groups": [
        {"group_name": "Floor Staff", "percentage": "60"},
        {"group_name": "Kitchen Staff", "percentage": "20"},
        {"group_name": "Cleaners", "percentage": "10"},
        {"group_name": "Management", "percentage": "10"},
    ]
}


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def waiter(db_session):
    return WaiterRepository(db_session).create(
        DEFAULT_RESTAURANT_ID, "Amina", phone_number="0712345678"
    )


def _settled_tip(db_session, net, waiter=None, created_at=SEPTEMBER):
    net = Decimal(net)
    return TipRepository(db_session).create(
        restaurant_id=DEFAULT_RESTAURANT_ID,
        waiter_id=waiter.id if waiter else None,
        amount=net + net / 9,
        commission_amount=net / 9,
        net_amount=net,
        tip_type=(TipType.WAITER if waiter else TipType.RESTAURANT).value,
        payment_status=TipStatus.COMPLETED.value,
        created_at=created_at,
    )


class TestTipsAPI:
    def test_record_waiter_tip(self, client, waiter):
        response = client.post(
            f"{BASE_URL}/tips",
            json={"amount": "500.00", "waiter_id": str(waiter.id), "correlation_id": "ws_CO_9"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["tip_type"] == "waiter"
        assert data["payment_status"] == "pending"
        assert Decimal(data["commission_amount"]) == Decimal("50")
        assert Decimal(data["net_amount"]) == Decimal("450")

    def test_record_restaurant_tip(self, client):
        response = client.post(f"{BASE_URL}/tips", json={"amount": "200"})

        assert response.status_code == 201
        assert response.json()["tip_type"] == "restaurant"

    def test_unknown_waiter(self, client):
        response = client.post(
            f"{BASE_URL}/tips", json={"amount": "200", "waiter_id": str(uuid4())}
        )
        assert response.status_code == 400

    def test_duplicate_correlation_id(self, client):
        client.post(f"{BASE_URL}/tips", json={"amount": "200", "correlation_id": "ws_CO_1"})
        response = client.post(
            f"{BASE_URL}/tips", json={"amount": "200", "correlation_id": "ws_CO_1"}
        )
        assert response.status_code == 400

    def test_non_positive_amount(self, client):
        response = client.post(f"{BASE_URL}/tips", json={"amount": "0"})
        assert response.status_code == 422

    def test_unknown_restaurant(self, client):
        response = client.post(f"/v1/restaurants/{uuid4()}/tips", json={"amount": "200"})
        assert response.status_code == 404

    def test_list_by_status(self, client, db_session, waiter):
        _settled_tip(db_session, "900", waiter)
        client.post(f"{BASE_URL}/tips", json={"amount": "200"})

        response = client.get(f"{BASE_URL}/tips", params={"status": "completed"})

        assert response.status_code == 200
        assert len(response.json()) == 1
        assert response.json()[0]["waiter_id"] == str(waiter.id)


class TestDistributionAPI:
    def test_replace_groups(self, client, db_session):
        response = client.put(f"{BASE_URL}/distribution", json=GROUPS)

        assert response.status_code == 200
        assert [g["group_name"] for g in response.json()] == [
            "Floor Staff",
            "Kitchen Staff",
            "Cleaners",
            "Management",
        ]
        assert len(client.get(f"{BASE_URL}/distribution").json()) == 4
        entry = db_session.query(AuditLog).filter_by(resource_type="distribution_groups").one()
        assert entry.action == "updated"

    def test_invalid_groups_are_rejected(self, client):
        response = client.put(
            f"{BASE_URL}/distribution",
            json={"groups": [{"group_name": "Floor Staff", "percentage": "90"}]},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["errors"] == [
            "Total percentage must equal 100% (currently 90.00%)"
        ]
        assert client.get(f"{BASE_URL}/distribution").json() == []

    def test_validate_reports_every_error(self, client):
        response = client.post(
            f"{BASE_URL}/distribution/validate",
            json={
                "groups": [
                    {"group_name": "", "percentage": "-5"},
                    {"group_name": "Cleaners", "percentage": "50"},
                ]
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is False
        assert len(data["errors"]) == 3

    def test_preview(self, client):
        client.put(f"{BASE_URL}/distribution", json=GROUPS)

        response = client.get(f"{BASE_URL}/distribution/preview", params={"amount": "900"})

        assert response.status_code == 200
        shares = {s["group_name"]: Decimal(s["amount"]) for s in response.json()["distributions"]}
        assert shares["Floor Staff"] == Decimal("540")
        assert shares["Cleaners"] == Decimal("90")
        assert Decimal(response.json()["total_distributed"]) == Decimal("900")


class TestCommissionAPI:
    def test_get_rate(self, client):
        response = client.get(f"{BASE_URL}/commission")

        assert response.status_code == 200
        assert Decimal(response.json()["commission_rate"]) == Decimal("10")

    def test_update_rate(self, client, db_session):
        response = client.put(
            f"{BASE_URL}/commission",
            json={"commission_rate": "15", "changed_by": "ops@tipflow.test", "reason": "Renewal"},
        )

        assert response.status_code == 200
        assert Decimal(response.json()["commission_rate"]) == Decimal("15")
        assert Decimal(client.get(f"{BASE_URL}/commission").json()["commission_rate"]) == 15

    def test_out_of_range(self, client):
        response = client.put(f"{BASE_URL}/commission", json={"commission_rate": "150"})
        assert response.status_code == 400


class TestPayoutScheduleAPI:
    def test_defaults(self, client):
        response = client.get(f"{BASE_URL}/payout-schedule")

        assert response.status_code == 200
        assert response.json()["enabled"] is True
        assert response.json()["notification_days"] == 3

    def test_update(self, client, db_session):
        response = client.put(
            f"{BASE_URL}/payout-schedule", json={"notification_days": 5, "payout_day": 28}
        )

        assert response.status_code == 200
        assert response.json()["notification_days"] == 5
        assert response.json()["payout_day"] == 28
        entry = db_session.query(AuditLog).filter_by(resource_type="restaurant").one()
        assert entry.changes["notification_days"] == {"old": 3, "new": 5}

    def test_notice_days_are_bounded(self, client):
        response = client.put(f"{BASE_URL}/payout-schedule", json={"notification_days": 30})
        assert response.status_code == 422


class TestBankAccountsAPI:
    ACCOUNT = {
        "group_name": "Kitchen Staff",
        "account_name": "Kitchen Staff Pool",
        "account_number": "0123456789",
        "bank_name": "Equity Bank",
        "bank_code": "068",
        "is_verified": True,
    }

    def test_create_and_list(self, client):
        response = client.post(f"{BASE_URL}/bank-accounts", json=self.ACCOUNT)

        assert response.status_code == 201
        assert response.json()["group_name"] == "Kitchen Staff"
        assert len(client.get(f"{BASE_URL}/bank-accounts").json()) == 1

    def test_one_account_per_group(self, client):
        client.post(f"{BASE_URL}/bank-accounts", json=self.ACCOUNT)

        response = client.post(f"{BASE_URL}/bank-accounts", json=self.ACCOUNT)

        assert response.status_code == 409

    def test_account_number_must_be_digits(self, client):
        response = client.post(
            f"{BASE_URL}/bank-accounts", json={**self.ACCOUNT, "account_number": "ACC-1234"}
        )
        assert response.status_code == 422

    def test_update_and_deactivate(self, client):
        account_id = client.post(f"{BASE_URL}/bank-accounts", json=self.ACCOUNT).json()["id"]

        response = client.patch(
            f"{BASE_URL}/bank-accounts/{account_id}", json={"bank_name": "KCB"}
        )
        assert response.json()["bank_name"] == "KCB"

        assert client.delete(f"{BASE_URL}/bank-accounts/{account_id}").status_code == 204
        assert client.get(f"{BASE_URL}/bank-accounts").json() == []
        inactive = client.get(f"{BASE_URL}/bank-accounts", params={"include_inactive": True})
        assert inactive.json()[0]["is_active"] is False

    def test_unknown_account(self, client):
        response = client.patch(f"{BASE_URL}/bank-accounts/{uuid4()}", json={"bank_name": "KCB"})
        assert response.status_code == 404


class TestPayoutsAPI:
    def test_calculate(self, client, db_session, waiter):
        _settled_tip(db_session, "1350", waiter)

        response = client.get(f"{BASE_URL}/payouts/calculate", params={"month": "2026-09"})

        assert response.status_code == 200
        data = response.json()
        assert data["month"] == "2026-09"
        assert Decimal(data["waiter_payouts"][0]["net_amount"]) == Decimal("1350")
        assert data["group_payouts"] == []

    def test_calculate_invalid_month(self, client):
        response = client.get(f"{BASE_URL}/payouts/calculate", params={"month": "2026-13"})
        assert response.status_code == 400

    def test_generate_then_conflict(self, client, db_session, waiter):
        _settled_tip(db_session, "1350", waiter)

        response = client.post(f"{BASE_URL}/payouts/generate", params={"month": "2026-09"})

        assert response.status_code == 200
        assert response.json()["payouts_created"] == 1
        payouts = client.get(f"{BASE_URL}/payouts", params={"month": "2026-09"}).json()
        assert len(payouts) == 1
        assert payouts[0]["status"] == "pending"
        assert payouts[0]["recipient_type"] == "waiter"

        again = client.post(f"{BASE_URL}/payouts/generate", params={"month": "2026-09"})
        assert again.status_code == 409

    def test_summary(self, client, db_session, waiter):
        _settled_tip(db_session, "1350", waiter)
        client.post(f"{BASE_URL}/payouts/generate", params={"month": "2026-09"})

        response = client.get(f"{BASE_URL}/payouts/summary", params={"month": "2026-09"})

        assert response.status_code == 200
        data = response.json()
        assert data["total_payouts"] == 1
        assert data["pending_payouts"] == 1
        assert Decimal(data["total_amount"]) == Decimal("1350")

    def test_ledger_comparison(self, client, db_session):
        client.put(f"{BASE_URL}/distribution", json=GROUPS)
        _settled_tip(db_session, "900")

        response = client.get(
            f"{BASE_URL}/payouts/ledger-comparison", params={"month": "2026-09"}
        )

        assert response.status_code == 200
        assert {row["group_name"] for row in response.json()} == {
            "Floor Staff",
            "Kitchen Staff",
            "Cleaners",
            "Management",
        }
        floor = next(r for r in response.json() if r["group_name"] == "Floor Staff")
        assert Decimal(floor["recomputed_amount"]) == Decimal("540")
        assert Decimal(floor["ledger_amount"]) == Decimal("0")
        assert Decimal(floor["difference"]) == Decimal("540")

    def test_list_invalid_month(self, client):
        response = client.get(f"{BASE_URL}/payouts", params={"month": "Sept"})
        assert response.status_code == 400

    def _group_payouts(self, db_session):
        for group_name, amount, status in (
            ("Floor Staff", "540.00", PayoutStatus.COMPLETED),
            ("Kitchen Staff", "180.00", PayoutStatus.PROCESSING),
            ("Cleaners", "90.00", PayoutStatus.PENDING),
        ):
            db_session.add(
                Payout(
                    restaurant_id=DEFAULT_RESTAURANT_ID,
                    recipient_type=RecipientType.GROUP.value,
                    group_name=group_name,
                    recipient_key=group_name,
                    amount=Decimal(amount),
                    tip_count=3,
                    payout_month=date(2026, 9, 1),
                    status=status.value,
                )
            )
        db_session.commit()

    def test_list_sorted_by_amount(self, client, db_session):
        self._group_payouts(db_session)

        response = client.get(f"{BASE_URL}/payouts", params={"order_by": "amount:desc"})

        assert response.status_code == 200
        assert [p["group_name"] for p in response.json()] == [
            "Floor Staff",
            "Kitchen Staff",
            "Cleaners",
        ]

    def test_list_filtered_by_status(self, client, db_session):
        self._group_payouts(db_session)

        response = client.get(f"{BASE_URL}/payouts", params={"status": "processing"})

        assert [p["group_name"] for p in response.json()] == ["Kitchen Staff"]

    def test_list_rejects_unsortable_field(self, client, db_session):
        self._group_payouts(db_session)

        response = client.get(
            f"{BASE_URL}/payouts", params={"order_by": "submission_reference:asc"}
        )

        assert response.status_code == 400
