"""Tests for provider status normalization."""

import pytest
from payments.gateway.port import Outcome
from payments.gateway.status_map import map_provider_status


class TestStatusMapping:
    @pytest.mark.parametrize("status", ["PAID", "paid", "Settled", "COMPLETED", "active"])
    def test_paid_family(self, status):
        assert map_provider_status(status) == Outcome.PAID

    @pytest.mark.parametrize("status", ["FAILED", "failed", "paused"])
    def test_failed_family(self, status):
        assert map_provider_status(status) == Outcome.FAILED

    def test_expired_is_distinct(self):
        assert map_provider_status("EXPIRED") == Outcome.EXPIRED

    def test_pending(self):
        assert map_provider_status("PENDING") == Outcome.STILL_PENDING

    @pytest.mark.parametrize("status", [None, "", "REFUND_REQUESTED"])
    def test_unknown_treated_as_pending(self, status):
        assert map_provider_status(status) == Outcome.STILL_PENDING

    def test_only_still_pending_is_not_definitive(self):
        assert [o for o in Outcome if not o.is_definitive] == [Outcome.STILL_PENDING]
