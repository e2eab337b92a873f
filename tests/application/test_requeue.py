"""Tests for RequeuePolicy."""

import pytest

from unisync.application.sync import RequeuePolicy
from unisync.core.ports import EngineConfig, RateLimitError, TransientError


class TestRequeuePolicy:
    """Tests for success and error requeue intervals."""

    def test_success_interval(self):
        assert RequeuePolicy().after_success() == 600

    @pytest.mark.parametrize("failures,expected", [
        (0, 10), (1, 10), (2, 20), (3, 40), (5, 160), (6, 300), (500, 300),
    ])
    def test_error_backoff(self, failures, expected):
        assert RequeuePolicy().after_error(failures) == expected

    def test_rate_limit_floor(self):
        policy = RequeuePolicy()
        assert policy.after_error(1, RateLimitError("slow", retry_after=45)) == 45
        assert policy.after_error(6, RateLimitError("slow", retry_after=45)) == 300
        assert policy.after_error(1, RateLimitError("slow")) == 10

    def test_other_errors_have_no_floor(self):
        assert RequeuePolicy().after_error(1, TransientError("x")) == 10

    def test_from_config(self):
        policy = RequeuePolicy.from_config(EngineConfig(
            success_requeue_seconds=60,
            error_requeue_base_seconds=1,
            error_requeue_max_seconds=4,
        ))
        assert policy.after_success() == 60
        assert [policy.after_error(n) for n in (1, 2, 3, 4)] == [1, 2, 4, 4]
