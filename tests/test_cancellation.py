"""Tests for cooperative cancellation of polling pipelines."""

from __future__ import annotations

import pytest

from job_tracker.cancellation import CancellationSource, CancellationToken
from job_tracker.errors import OperationCancelled


class TestCancellationToken:
    """Test CancellationToken behavior."""

    def test_token_starts_uncancelled(self):
        token = CancellationToken()
        assert not token.is_cancelled
        token.raise_if_cancelled()

    def test_cancel_is_idempotent(self):
        token = CancellationToken()

        token.cancel()
        token.cancel()

        assert token.is_cancelled

    def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelled):
            token.raise_if_cancelled()


class TestCancellationSource:
    """Test broadcast to in-flight pipelines."""

    def test_cancel_pending_cancels_current_and_rearms(self):
        source = CancellationSource()
        in_flight = source.token

        source.cancel_pending()

        assert in_flight.is_cancelled
        assert source.token is not in_flight
        assert not source.token.is_cancelled

    def test_pipelines_share_current_token(self):
        source = CancellationSource()
        first, second = source.token, source.token

        source.cancel_pending()

        assert first is second
        assert first.is_cancelled
