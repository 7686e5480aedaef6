"""Per-client sliding-window admission control."""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict

from docquery.errors import Throttled

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RateLimitState:
    request_timestamps: Deque[float] = field(default_factory=deque)
    blocked: bool = False
    blocked_until: float = 0.0


@dataclass(frozen=True, slots=True)
class AdmissionDecision:
    allowed: bool
    remaining: int = 0
    retry_after: int | None = None
    reason: str | None = None


class AdmissionController:
    """Sliding-window limiter with a fixed cooldown once a client overshoots.

    While blocked, requests are rejected without looking at the window.
    The first request after the cooldown clears the block and starts a
    fresh history.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        *,
        max_clients: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_clients = max_clients
        self._clock = clock
        self._clients: Dict[str, RateLimitState] = {}
        self._lock = threading.Lock()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def check(self, client_id: str) -> AdmissionDecision:
        """Decide on one request from ``client_id`` and record it if admitted."""
        with self._lock:
            now = self._clock()
            state = self._clients.get(client_id)
            if state is None:
                if len(self._clients) >= self.max_clients:
                    self._sweep(now)
                state = self._clients[client_id] = RateLimitState()

            if state.blocked:
                if now < state.blocked_until:
                    return AdmissionDecision(
                        allowed=False,
                        retry_after=max(1, math.ceil(state.blocked_until - now)),
                        reason="blocked",
                    )
                state.blocked = False
                state.request_timestamps.clear()

            window_start = now - self.window_seconds
            timestamps = state.request_timestamps
            while timestamps and timestamps[0] <= window_start:
                timestamps.popleft()

            if len(timestamps) >= self.max_requests:
                state.blocked = True
                state.blocked_until = now + self.window_seconds
                LOGGER.debug("Client %s blocked for %.0fs", client_id, self.window_seconds)
                return AdmissionDecision(
                    allowed=False,
                    retry_after=math.ceil(self.window_seconds),
                    reason="rate_limit",
                )

            timestamps.append(now)
            return AdmissionDecision(
                allowed=True, remaining=self.max_requests - len(timestamps)
            )

    def admit(self, client_id: str) -> AdmissionDecision:
        """Like :meth:`check` but raises :class:`Throttled` on rejection."""
        decision = self.check(client_id)
        if not decision.allowed:
            raise Throttled(decision.retry_after or 1, decision.reason or "rate_limit")
        return decision

    def _sweep(self, now: float) -> None:
        window_start = now - self.window_seconds
        stale = [
            client_id
            for client_id, state in self._clients.items()
            if not (state.blocked and now < state.blocked_until)
            and not any(stamp > window_start for stamp in state.request_timestamps)
        ]
        for client_id in stale:
            del self._clients[client_id]
        if stale:
            LOGGER.debug("Swept %d idle rate-limit entries", len(stale))
