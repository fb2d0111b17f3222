"""Tests for the operator payout endpoints."""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.main import app
from app.models.notification import PayoutNotification
from app.models.payout import Payout, PayoutStatus, RecipientType
from app.models.tip import TipStatus, TipType
from app.repositories.tip_repository import TipRepository
from app.repositories.waiter_repository import WaiterRepository
from app.services.disbursement_rails import RailStatus, RailSubmission
from tests.conftest import DEFAULT_RESTAURANT_ID

SEPTEMBER = date(2026, 9, 1)


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def waiter(db_session):
    return WaiterRepository(db_session).create(
        DEFAULT_RESTAURANT_ID, "Amina", phone_number="0712345678"
    )


@pytest.fixture
def mock_rail():
    rail = MagicMock()
    rail.submit.return_value = RailSubmission(
        accepted=True, transaction_reference="AG_20261001_00001"
    )
    rail.query_status.return_value = RailStatus(state="pending")
    with patch(
        "app.services.disbursement_service.get_disbursement_rail", return_value=rail
    ):
        yield rail


def _payout(db_session, waiter, status=PayoutStatus.PENDING, **fields):
    payout = Payout(
        restaurant_id=DEFAULT_RESTAURANT_ID,
        recipient_type=RecipientType.WAITER.value,
        waiter_id=waiter.id,
        recipient_key=str(waiter.id),
        amount=Decimal("1350.50"),
        tip_count=2,
        payout_month=SEPTEMBER,
        status=status.value,
        **fields,
    )
    db_session.add(payout)
    db_session.commit()
    db_session.refresh(payout)
    return payout


class TestProcessPayouts:
    def test_dry_run_changes_nothing(self, client, db_session, waiter):
        payout = _payout(db_session, waiter)

        response = client.post("/v1/payouts/process", json={"dry_run": True})

        assert response.status_code == 200
        data = response.json()
        assert data["dry_run"] is True
        assert data["processed"] == 1
        assert data["results"][0]["status"] == "planned"
        assert data["results"][0]["destination"] == "****5678"
        assert Decimal(data["results"][0]["amount"]) == Decimal("1351")
        db_session.refresh(payout)
        assert payout.status == PayoutStatus.PENDING.value

    def test_process_submits(self, client, db_session, waiter, mock_rail):
        payout = _payout(db_session, waiter)

        response = client.post("/v1/payouts/process", json={})

        assert response.status_code == 200
        assert response.json()["processed"] == 1
        instruction = mock_rail.submit.call_args[0][0]
        assert instruction.reference == f"PAYOUT-{payout.id}-1"
        assert instruction.amount == Decimal("1351")
        db_session.refresh(payout)
        assert payout.status == PayoutStatus.PROCESSING.value
        assert payout.transaction_reference == "AG_20261001_00001"

    def test_unconfigured_rail_fails_submission(self, client, db_session, waiter):
        payout = _payout(db_session, waiter)

        with (
            patch.object(settings, "mpesa_initiator_name", ""),
            patch.object(settings, "mpesa_security_credential", ""),
        ):
            response = client.post("/v1/payouts/process", json={})

        assert response.json()["failed"] == 1
        db_session.refresh(payout)
        assert payout.status == PayoutStatus.FAILED.value
        assert payout.failure_kind == "submission"
        assert payout.failure_code == "not_configured"

    def test_retry_failed(self, client, db_session, waiter, mock_rail):
        payout = _payout(
            db_session,
            waiter,
            status=PayoutStatus.FAILED,
            attempts=1,
            failure_kind="submission",
            failure_code="2001",
        )

        response = client.post(
            "/v1/payouts/process",
            json={"action": "retry", "payout_ids": [str(payout.id)]},
        )

        assert response.status_code == 200
        assert response.json()["processed"] == 1
        db_session.refresh(payout)
        assert payout.status == PayoutStatus.PROCESSING.value
        assert payout.attempts == 2
        assert payout.failure_code is None

    def test_explicit_id_in_wrong_status_is_skipped(self, client, db_session, waiter):
        payout = _payout(db_session, waiter, status=PayoutStatus.COMPLETED)

        response = client.post("/v1/payouts/process", json={"payout_ids": [str(payout.id)]})

        assert response.json()["skipped"] == 1
        assert response.json()["results"][0]["error"] == "Payout is completed"

    def test_invalid_month(self, client):
        response = client.post("/v1/payouts/process", json={"month": "2026-13"})
        assert response.status_code == 400

    def test_unknown_action(self, client):
        response = client.post("/v1/payouts/process", json={"action": "cancel"})
        assert response.status_code == 422


class TestGenerateMonthly:
    def test_generates_for_every_restaurant(self, client, db_session, waiter):
        TipRepository(db_session).create(
            restaurant_id=DEFAULT_RESTAURANT_ID,
            waiter_id=waiter.id,
            amount=Decimal("1500.00"),
            commission_amount=Decimal("150.00"),
            net_amount=Decimal("1350.00"),
            tip_type=TipType.WAITER.value,
            payment_status=TipStatus.COMPLETED.value,
            created_at=datetime(2026, 9, 12, tzinfo=UTC),
        )

        response = client.post("/v1/payouts/generate-monthly", json={"month": "2026-09"})

        assert response.status_code == 200
        data = response.json()
        assert data["month"] == "2026-09"
        assert data["processed_restaurants"] == 1
        assert data["total_payouts"] == 1

    def test_invalid_month(self, client):
        response = client.post("/v1/payouts/generate-monthly", json={"month": "September"})
        assert response.status_code == 400


class TestReconcile:
    def test_completes_stale_payout(self, client, db_session, waiter, mock_rail):
        payout = _payout(
            db_session,
            waiter,
            status=PayoutStatus.PROCESSING,
            rail="mobile_money",
            transaction_reference="AG_20261001_00001",
            submitted_at=datetime.now(UTC) - timedelta(hours=2),
            attempts=1,
        )
        mock_rail.query_status.return_value = RailStatus(
            state="completed", provider_transaction_id="RKTQDM7W6S"
        )

        response = client.post("/v1/payouts/reconcile", json={"older_than_minutes": 60})

        assert response.status_code == 200
        assert response.json()["checked"] == 1
        assert response.json()["completed"] == 1
        db_session.refresh(payout)
        assert payout.status == PayoutStatus.COMPLETED.value

    def test_claimed_payout_without_submission(self, client, db_session, waiter, mock_rail):
        payout = _payout(
            db_session,
            waiter,
            status=PayoutStatus.PROCESSING,
            rail="mobile_money",
            submission_reference="PAYOUT-claimed-1",
            updated_at=datetime.now(UTC) - timedelta(days=3),
            attempts=1,
        )
        mock_rail.query_status.return_value = RailStatus(state="unknown")

        response = client.post("/v1/payouts/reconcile", json={})

        data = response.json()
        assert data["checked"] == 1
        assert data["needs_review"] == 1
        assert data["review_payout_ids"] == [str(payout.id)]
        mock_rail.query_status.assert_called_once_with(None, reference="PAYOUT-claimed-1")


class TestResolve:
    def test_resolves_processing_payout(self, client, db_session, waiter):
        payout = _payout(
            db_session,
            waiter,
            status=PayoutStatus.PROCESSING,
            rail="mobile_money",
            submission_reference="PAYOUT-claimed-1",
            attempts=1,
        )

        response = client.post(
            f"/v1/payouts/{payout.id}/resolve",
            json={"status": "completed", "provider_transaction_id": "RKTQDM7W6S"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert response.json()["provider_transaction_id"] == "RKTQDM7W6S"

    def test_pending_payout_conflicts(self, client, db_session, waiter):
        payout = _payout(db_session, waiter)

        response = client.post(f"/v1/payouts/{payout.id}/resolve", json={"status": "failed"})

        assert response.status_code == 409

    def test_unknown_payout(self, client):
        response = client.post(
            "/v1/payouts/00000000-0000-0000-0000-000000000000/resolve",
            json={"status": "failed"},
        )
        assert response.status_code == 404

    def test_invalid_status(self, client, db_session, waiter):
        payout = _payout(db_session, waiter, status=PayoutStatus.PROCESSING)

        response = client.post(f"/v1/payouts/{payout.id}/resolve", json={"status": "pending"})

        assert response.status_code == 422


class TestNotificationsAPI:
    def test_queue_upcoming_and_list(self, client, db_session, waiter):
        _payout(db_session, waiter)

        response = client.post(
            "/v1/payouts/notifications/upcoming", json={"today": "2026-09-27"}
        )

        assert response.status_code == 200
        assert response.json() == {"date": "2026-09-27", "queued": 1, "already_queued": 0}
        listed = client.get("/v1/payouts/notifications", params={"kind": "upcoming"}).json()
        assert len(listed) == 1
        assert listed[0]["recipient"] == "0712345678"
        assert listed[0]["status"] == "queued"

    def test_wrong_day_queues_nothing(self, client, db_session, waiter):
        _payout(db_session, waiter)

        response = client.post(
            "/v1/payouts/notifications/upcoming", json={"today": "2026-09-20"}
        )

        assert response.json()["queued"] == 0
        assert db_session.query(PayoutNotification).count() == 0


class TestOperatorAuth:
    def test_key_required_when_configured(self, client):
        with patch.object(settings, "OPERATOR_API_KEY", "op-secret"):
            response = client.post("/v1/payouts/process", json={"dry_run": True})
        assert response.status_code == 401

    def test_wrong_key(self, client):
        with patch.object(settings, "OPERATOR_API_KEY", "op-secret"):
            response = client.post(
                "/v1/payouts/process",
                json={"dry_run": True},
                headers={"Authorization": "Bearer nope"},
            )
        assert response.status_code == 401

    def test_valid_key(self, client):
        with patch.object(settings, "OPERATOR_API_KEY", "op-secret"):
            response = client.post(
                "/v1/payouts/process",
                json={"dry_run": True},
                headers={"Authorization": "Bearer op-secret"},
            )
        assert response.status_code == 200

    def test_restaurant_endpoints_stay_open(self, client):
        with patch.object(settings, "OPERATOR_API_KEY", "op-secret"):
            response = client.get(f"/v1/restaurants/{DEFAULT_RESTAURANT_ID}/commission")
        assert response.status_code == 200
