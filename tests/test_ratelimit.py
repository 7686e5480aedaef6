"""Tests for the admission controller."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from docquery.errors import Throttled
from docquery.ratelimit import AdmissionController


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> AdmissionController:
    return AdmissionController(max_requests=10, window_seconds=60, clock=clock)


class TestAdmissionController:
    """Test sliding-window admission."""

    def test_admits_up_to_limit(self, limiter, clock) -> None:
        """Should admit max_requests and count down remaining."""
        for expected_remaining in range(9, -1, -1):
            decision = limiter.check("1.2.3.4")
            assert decision.allowed
            assert decision.remaining == expected_remaining
            clock.advance(1)

    def test_eleventh_request_rejected(self, limiter, clock) -> None:
        """Should reject the request past the limit."""
        for _ in range(10):
            assert limiter.check("client").allowed
            clock.advance(1)

        decision = limiter.check("client")

        assert not decision.allowed
        assert decision.reason == "rate_limit"
        assert 0 < decision.retry_after <= 60

    def test_blocked_client_rejected_without_reevaluating(self, limiter, clock) -> None:
        """Should keep rejecting until the cooldown ends."""
        for _ in range(11):
            limiter.check("client")

        # Old requests have left the window, but the cooldown still holds.
        clock.advance(59)
        decision = limiter.check("client")

        assert not decision.allowed
        assert decision.reason == "blocked"
        assert decision.retry_after == 1

    def test_cooldown_elapses_and_resets_history(self, limiter, clock) -> None:
        """Should admit again with a fresh history after the cooldown."""
        for _ in range(11):
            limiter.check("client")

        clock.advance(60)
        decision = limiter.check("client")

        assert decision.allowed
        assert decision.remaining == 9

    def test_window_slides(self, limiter, clock) -> None:
        """Should admit once old requests leave the window."""
        for _ in range(10):
            limiter.check("client")

        clock.advance(61)

        assert limiter.check("client").allowed

    def test_clients_are_independent(self, limiter) -> None:
        """Should track each client separately."""
        for _ in range(11):
            limiter.check("noisy")

        assert not limiter.check("noisy").allowed
        assert limiter.check("quiet").allowed

    def test_admit_raises_throttled(self, limiter) -> None:
        """Should raise Throttled with the retry delay."""
        for _ in range(10):
            limiter.admit("client")

        with pytest.raises(Throttled) as excinfo:
            limiter.admit("client")

        assert excinfo.value.retry_after == 60

    def test_idle_clients_swept_at_capacity(self, clock) -> None:
        """Should sweep idle clients at capacity."""
        limiter = AdmissionController(max_requests=2, window_seconds=10, max_clients=3, clock=clock)
        for client in ("a", "b", "c"):
            limiter.check(client)
        clock.advance(11)

        limiter.check("d")

        assert limiter.client_count == 1

    def test_blocked_clients_survive_sweep(self, clock) -> None:
        """Should keep blocked clients through a sweep."""
        limiter = AdmissionController(max_requests=1, window_seconds=10, max_clients=2, clock=clock)
        limiter.check("a")
        limiter.check("a")  # now blocked until +10
        limiter.check("b")
        clock.advance(5)

        limiter.check("c")

        assert not limiter.check("a").allowed

    def test_concurrent_checks_admit_exactly_the_limit(self, limiter) -> None:
        """Should admit exactly max_requests when many threads race for one client."""
        barrier = threading.Barrier(25)

        def hit(_: int) -> bool:
            barrier.wait(timeout=5)
            return limiter.check("shared").allowed

        with ThreadPoolExecutor(max_workers=25) as pool:
            results = list(pool.map(hit, range(50)))

        assert results.count(True) == 10
        assert results.count(False) == 40

    def test_invalid_configuration(self) -> None:
        """Should reject non-positive limits."""
        with pytest.raises(ValueError):
            AdmissionController(max_requests=0)
        with pytest.raises(ValueError):
            AdmissionController(window_seconds=0)
