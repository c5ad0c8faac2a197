"""
Run-scoped context: everything one run accumulates, and its budgets.

A fresh RunContext is built for every run and dropped when the run ends.
Nothing here is module-level, so concurrent runs never see each other's
logs or screenshots.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from . import config
from .errors import BudgetExceededError
from .navigator import RetryPolicy
from .run_log import RunLog
from .screenshots import ScreenshotSink

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    sink: ScreenshotSink
    run_log: RunLog = field(default_factory=RunLog)
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    max_turns: int = config.MAX_TURNS
    timeout_seconds: float = config.RUN_TIMEOUT_SECONDS
    type_delay_ms: int = config.TYPE_DELAY_MS
    run_id: str = field(default_factory=lambda: f"run_{uuid.uuid4().hex[:12]}")
    turns_used: int = 0
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)
    _started: float = field(default_factory=time.monotonic, repr=False)

    def elapsed_seconds(self) -> float:
        return time.monotonic() - self._started

    def remaining_ms(self) -> int:
        return max(0, int((self.timeout_seconds - self.elapsed_seconds()) * 1000))

    def clamp_timeout(self, timeout_ms: int) -> int:
        """Keep a single action from outliving the run's wall-clock budget."""
        return max(1, min(timeout_ms, self.remaining_ms()))

    def consume_turn(self, tool_name: str) -> int:
        """Spend one turn on tool_name, or raise if a budget is gone."""
        reason: Optional[str] = None
        if self.turns_used >= self.max_turns:
            reason = f"max turns ({self.max_turns}) reached before {tool_name}"
        elif self.remaining_ms() <= 0:
            reason = f"wall-clock limit ({self.timeout_seconds:g}s) reached before {tool_name}"
        if reason:
            self.run_log.append(f"Budget exhausted: {reason}", logging.WARNING)
            raise BudgetExceededError(reason)
        self.turns_used += 1
        return self.turns_used
