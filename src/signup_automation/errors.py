"""
Error taxonomy for the automation core.

Fatal errors (LaunchError, BudgetExceededError, SessionClosedError) end the run.
ToolError and its subclasses are recoverable: the tool dispatcher hands them to
the driver as typed failure values. ScreenshotError and CleanupError never
propagate past the component that produced them.
"""

from typing import Optional


class AutomationError(Exception):
    """Base class for every error raised by the automation core."""


class LaunchError(AutomationError):
    """The browser engine failed to start. Not retried."""

    def __init__(self, engine_kind: str, message: str):
        self.engine_kind = engine_kind
        self.message = message
        super().__init__(f"{engine_kind} engine failed to launch: {message}")


class BudgetExceededError(AutomationError):
    """The run's turn or wall-clock budget is exhausted."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Run budget exhausted: {reason}")


class SessionClosedError(AutomationError):
    """An operation was attempted on a session whose browser is gone."""


class ToolError(AutomationError):
    """A tool call failed in a way the driver may recover from.

    Carries the tool name, the offending selector or URL, and how long the
    call ran before failing.
    """

    kind = "tool_error"

    def __init__(
        self,
        message: str,
        *,
        tool: str = "",
        target: Optional[str] = None,
        elapsed_ms: int = 0,
    ):
        self.message = message
        self.tool = tool
        self.target = target
        self.elapsed_ms = elapsed_ms
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "tool": self.tool,
            "target": self.target,
            "elapsedMs": self.elapsed_ms,
            "message": self.message,
        }


class NavigationError(ToolError):
    """The navigation call itself failed (DNS, timeout, engine error)."""

    kind = "navigation_error"


class ElementNotFoundError(ToolError):
    """A wait for a selector expired without the element appearing."""

    kind = "element_not_found"


class ActionTimeoutError(ToolError):
    """A click or type could not find its target within the timeout."""

    kind = "action_timeout"


class InteractionError(ToolError):
    """The engine rejected a click or type for a reason other than a timeout."""

    kind = "interaction_error"


class InvalidArgumentsError(ToolError):
    """Unknown tool name, or arguments that do not match the tool schema."""

    kind = "invalid_arguments"


class ScreenshotError(AutomationError):
    """Capturing or persisting a frame failed. Downgraded to a log entry."""

    def __init__(self, step: str, message: str):
        self.step = step
        self.message = message
        super().__init__(f"Screenshot '{step}' failed: {message}")


class CleanupError(AutomationError):
    """Releasing the browser failed. Logged, never re-raised past the run."""
