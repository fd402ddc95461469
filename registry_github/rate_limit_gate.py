# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Process-wide GitHub REST quota gate.

Two states:
  Open              -> calls go through
  Limited(reset_at) -> calls short-circuit with a synthetic RATE_LIMITED result (no network I/O)

The gate only becomes Limited on an explicit rate-limit signal from GitHub, and clears
lazily: the first check_before_call() at or after reset_at reopens it. The quota is shared
by every concurrent call, so probing an exhausted API just burns the next window too.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from registry_common import DEFAULT_RATE_LIMIT_BACKOFF_MS, now_ms
from registry_github.fetch_types import FetchResult

_logger = logging.getLogger(__name__)


class RateLimitGate:
    """Shared rate-limit state; thread-safe, clock injectable for tests."""

    def __init__(
        self,
        *,
        clock: Callable[[], int] = now_ms,
        default_backoff_ms: int = DEFAULT_RATE_LIMIT_BACKOFF_MS,
    ):
        self._mu = threading.Lock()
        self._clock = clock
        self._default_backoff_ms = int(default_backoff_ms)
        self._is_limited = False
        self._reset_at_ms = 0

    @property
    def is_limited(self) -> bool:
        with self._mu:
            return self._is_limited

    @property
    def reset_at_ms(self) -> int:
        with self._mu:
            return self._reset_at_ms

    def check_before_call(self) -> Optional[FetchResult]:
        """Return None if a remote call may proceed, else a synthetic RATE_LIMITED result."""
        with self._mu:
            if not self._is_limited:
                return None
            now = int(self._clock())
            if now >= self._reset_at_ms:
                _logger.info("Rate limit window passed (reset_at_ms=%d); reopening gate", self._reset_at_ms)
                self._is_limited = False
                self._reset_at_ms = 0
                return None
            reset_at = self._reset_at_ms

        return FetchResult.rate_limited(
            reset_at,
            error=f"Rate limit exceeded; skipping request until reset (in {(reset_at - now) // 1000}s)",
        )

    def report_limited(self, reset_at_ms: Optional[int] = None) -> None:
        """Transition to Limited(reset_at); defaults to now + backoff when GitHub gave no reset time."""
        with self._mu:
            if reset_at_ms is None or int(reset_at_ms) <= 0:
                reset_at = int(self._clock()) + self._default_backoff_ms
            else:
                reset_at = int(reset_at_ms)
            self._is_limited = True
            self._reset_at_ms = reset_at
        _logger.warning("GitHub rate limit reported; gating remote calls until epoch_ms=%d", reset_at)

    def reset(self) -> None:
        """Force the gate open (used after an explicit quota check shows remaining > 0)."""
        with self._mu:
            self._is_limited = False
            self._reset_at_ms = 0
