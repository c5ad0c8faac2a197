"""
Run log: the ordered, append-only diagnostic record of one run.

Two parallel views are kept:
  - lines:       human-readable "[timestamp] message" strings
  - invocations: structured ToolInvocation records, one per tool call

A RunLog is created per run and handed back to the caller whether the run
succeeded or not. Appending never fails the caller.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC with millisecond precision and a trailing Z."""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class ToolInvocation:
    """Record of a single tool call. Immutable once recorded."""
    sequence: int
    name: str
    arguments: dict
    started_at: str
    duration_ms: int
    success: bool
    result: Any = None
    error: Optional[dict] = None

    def to_dict(self) -> dict:
        return {
            "sequence": self.sequence,
            "name": self.name,
            "arguments": self.arguments,
            "startedAt": self.started_at,
            "durationMs": self.duration_ms,
            "success": self.success,
            "result": self.result,
            "error": self.error,
        }


@dataclass
class RunLog:
    """Per-run accumulator. Never share one between runs."""
    engine_kind: Optional[str] = None
    _lines: list = field(default_factory=list)
    _invocations: list = field(default_factory=list)

    def append(self, message: str, level: int = logging.INFO) -> None:
        """Add a timestamped line. Fire-and-forget."""
        try:
            self._lines.append(f"[{utc_timestamp()}] {message}")
            logger.log(level, message)
        except Exception as e:
            logger.warning(f"Run log append failed: {e}")

    def record(
        self,
        name: str,
        arguments: dict,
        started_at: str,
        duration_ms: int,
        success: bool,
        result: Any = None,
        error: Optional[dict] = None,
    ) -> ToolInvocation:
        """Store a finished tool call and narrate it as a line."""
        invocation = ToolInvocation(
            sequence=len(self._invocations) + 1,
            name=name,
            arguments=dict(arguments),
            started_at=started_at,
            duration_ms=duration_ms,
            success=success,
            result=result,
            error=error,
        )
        self._invocations.append(invocation)
        if success:
            self.append(f"{name} ok in {duration_ms}ms: {_brief(result)}")
        else:
            message = (error or {}).get("message", "failed")
            self.append(f"{name} failed after {duration_ms}ms: {message}", logging.WARNING)
        return invocation

    def set_engine(self, engine_kind: str) -> None:
        self.engine_kind = engine_kind
        self.append(f"Engine: {engine_kind}")

    def snapshot(self) -> list[str]:
        """Lines in call order (a copy)."""
        return list(self._lines)

    @property
    def invocations(self) -> list[ToolInvocation]:
        return list(self._invocations)

    def action_sequence(self) -> list[str]:
        """Tool names in the order they were called."""
        return [inv.name for inv in self._invocations]


def _brief(result: Any, limit: int = 120) -> str:
    text = str(result)
    return text if len(text) <= limit else text[: limit - 3] + "..."
