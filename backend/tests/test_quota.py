"""Tests for the event creation quota."""

from fastapi.testclient import TestClient

from eventplan.main import app
from eventplan.schemas.quota import QuotaWarning
from eventplan.services.quota_service import QuotaService, classify_warning, compute_quota
from tests.conftest import auth_headers, make_account, make_event

client = TestClient(app)


class TestComputeQuota:
    def test_remaining_and_can_create(self):
        quota = compute_quota(base_quota=2, topup_credits=3, used=1, is_unlimited=False)
        assert quota.total_quota == 5
        assert quota.remaining == 4
        assert quota.can_create is True
        assert quota.percentage_used == 20.0

    def test_remaining_never_negative(self):
        quota = compute_quota(base_quota=1, topup_credits=0, used=4, is_unlimited=False)
        assert quota.remaining == 0
        assert quota.can_create is False

    def test_unlimited(self):
        quota = compute_quota(base_quota=0, topup_credits=0, used=50, is_unlimited=True)
        assert quota.remaining is None
        assert quota.can_create is True
        assert classify_warning(quota) is None


class TestClassifyWarning:
    def _warning(self, used: int, total: int = 100) -> QuotaWarning | None:
        return classify_warning(
            compute_quota(base_quota=total, topup_credits=0, used=used, is_unlimited=False)
        )

    def test_thresholds(self):
        assert self._warning(100) == QuotaWarning.QUOTA_REACHED
        assert self._warning(91) == QuotaWarning.QUOTA_90
        assert self._warning(81) == QuotaWarning.QUOTA_80
        assert self._warning(50) is None

    def test_boundaries_are_inclusive(self):
        assert self._warning(90) == QuotaWarning.QUOTA_90
        assert self._warning(80) == QuotaWarning.QUOTA_80
        assert self._warning(79) is None

    def test_reached_wins_over_percentages(self):
        assert self._warning(120) == QuotaWarning.QUOTA_REACHED

    def test_zero_total_is_reached(self):
        assert self._warning(0, total=0) == QuotaWarning.QUOTA_REACHED


class TestQuotaService:
    def test_counts_owned_events(self, db_session):
        account = make_account(db_session, "planner@example.com", base_quota=2, topup_credits=0)
        make_event(db_session, account, "One")
        make_event(db_session, account, "Two")

        result = QuotaService(db_session).quota_for(account.id)

        assert result.quota.used == 2
        assert result.quota.remaining == 0
        assert result.warning == QuotaWarning.QUOTA_REACHED


class TestQuotaAPI:
    def test_get_quota(self, db_session):
        account = make_account(db_session, "me@example.com", base_quota=5, topup_credits=5)
        for i in range(8):
            make_event(db_session, account, f"Event {i}")

        response = client.get("/user/quota", headers=auth_headers(account))

        assert response.status_code == 200
        data = response.json()
        assert data["quota"]["total_quota"] == 10
        assert data["quota"]["used"] == 8
        assert data["quota"]["remaining"] == 2
        assert data["warning"] == "quota_80"

    def test_requires_token(self):
        response = client.get("/user/quota")
        assert response.status_code == 401

    def test_rejects_bad_token(self):
        response = client.get("/user/quota", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token"
