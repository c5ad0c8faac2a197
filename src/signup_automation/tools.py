"""
Browser tools exposed to the agent driver.

Each tool is a pydantic model tagged by its `name`; the five models form a
closed discriminated union validated by one TypeAdapter. The Toolbox is the
single typed entry point: it validates, spends a turn, dispatches, and records
every call in the RunLog before returning.

Recoverable failures (ToolError) come back as ToolResult.failure so the
driver can choose another selector, retry, or give up. Screenshot failures
come back as plain text. Anything else is recorded and re-raised.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Optional, Union

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from .browser import BrowserSession
from .context import RunContext
from .errors import (
    ActionTimeoutError,
    ElementNotFoundError,
    InteractionError,
    InvalidArgumentsError,
    ScreenshotError,
    ToolError,
)
from .navigator import RetryingNavigator
from .run_log import utc_timestamp

logger = logging.getLogger(__name__)


# ── Tool schemas ──────────────────────────────────────────────────────────

class _ToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class OpenUrl(_ToolArgs):
    """Navigate to a URL. Reports the page title, final URL and whether the signup form rendered."""
    tool: Literal["open_url"] = "open_url"
    url: str = Field(..., min_length=1, description="The URL to open")


class Click(_ToolArgs):
    """Click an element by CSS selector OR by accessible role+name. nth picks among several matches."""
    tool: Literal["click"] = "click"
    selector: Optional[str] = Field(None, description="CSS selector (omit to target by role+name)")
    role: Optional[Literal["button", "link", "textbox", "checkbox", "radio", "img"]] = Field(
        None, description="Accessible role (used with name when no selector is given)"
    )
    name: Optional[str] = Field(None, description="Accessible name, matched case-insensitively as a substring")
    nth: int = Field(0, ge=0, description="Zero-based index among matching elements")
    timeout_ms: int = Field(10000, alias="timeoutMs", gt=0, le=120000, description="How long to wait for the element")

    @field_validator("selector", "role", "name", mode="before")
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _needs_target(self):
        if not self.selector and not (self.role and self.name):
            raise ValueError("provide either selector or role+name")
        return self

    @property
    def target(self) -> str:
        """Human-readable description of what is being clicked."""
        label = self.selector or f"role={self.role} name={self.name}"
        return f"{label}[{self.nth}]" if self.nth else label


class TypeText(_ToolArgs):
    """Fill an input field by typing one character at a time."""
    tool: Literal["type_text"] = "type_text"
    selector: str = Field(..., min_length=1, description="CSS selector of the input")
    text: str = Field(..., description="Text to type")
    timeout_ms: int = Field(10000, alias="timeoutMs", gt=0, le=120000, description="How long to wait for the input")


class WaitFor(_ToolArgs):
    """Wait for a selector to appear."""
    tool: Literal["wait_for"] = "wait_for"
    selector: str = Field(..., min_length=1, description="CSS selector to wait for")
    timeout_ms: int = Field(15000, alias="timeoutMs", gt=0, le=120000, description="How long to wait")


class TakeScreenshot(_ToolArgs):
    """Take a screenshot. Returns a reference (URL path or data URI) and the step label."""
    tool: Literal["take_screenshot"] = "take_screenshot"
    step: str = Field(..., min_length=1, description="Short label for this step (used in filename)")
    full_page: bool = Field(False, alias="fullPage", description="Capture the whole scrollable page")


ToolCommand = Annotated[
    Union[OpenUrl, Click, TypeText, WaitFor, TakeScreenshot],
    Field(discriminator="tool"),
]

TOOL_MODELS = (OpenUrl, Click, TypeText, WaitFor, TakeScreenshot)
TOOL_NAMES = tuple(model.model_fields["tool"].default for model in TOOL_MODELS)

_COMMAND_ADAPTER = TypeAdapter(ToolCommand)


def parse_command(name: str, arguments: Optional[dict] = None):
    """Validate a call by name into its tagged command model."""
    return _COMMAND_ADAPTER.validate_python({**(arguments or {}), "tool": name})


def tool_definitions() -> list[dict]:
    """OpenAI function definitions generated from the schemas."""
    definitions = []
    for model in TOOL_MODELS:
        schema = model.model_json_schema(by_alias=True)
        schema.pop("title", None)
        properties = schema.get("properties", {})
        properties.pop("tool", None)
        for prop in properties.values():
            prop.pop("title", None)
        definitions.append({
            "type": "function",
            "function": {
                "name": model.model_fields["tool"].default,
                "description": (model.__doc__ or "").strip(),
                "parameters": schema,
            },
        })
    return definitions


# ── Results ───────────────────────────────────────────────────────────────

@dataclass
class ToolResult:
    """What a driver gets back from one tool call."""
    name: str
    output: Any = None
    failure: Optional[ToolError] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    def unwrap(self) -> Any:
        """Return the output, or raise the typed failure."""
        if self.failure is not None:
            raise self.failure
        return self.output

    def to_text(self) -> str:
        if self.failure is not None:
            return f"Error ({self.failure.kind}): {self.failure.message}"
        if isinstance(self.output, (dict, list)):
            return json.dumps(self.output)
        return str(self.output)


# ── Toolbox ───────────────────────────────────────────────────────────────

class Toolbox:
    """The tool surface of one live session, scoped to one run."""

    def __init__(
        self,
        session: BrowserSession,
        context: RunContext,
        navigator: Optional[RetryingNavigator] = None,
    ):
        self.session = session
        self.context = context
        self.navigator = navigator or RetryingNavigator(
            context.retry_policy, sleep=context.sleep, run_log=context.run_log
        )

    @property
    def names(self) -> tuple:
        return TOOL_NAMES

    def definitions(self) -> list[dict]:
        return tool_definitions()

    async def call(self, name: str, arguments: Optional[dict] = None) -> ToolResult:
        """Run one tool call end-to-end. Every call lands in the RunLog."""
        arguments = dict(arguments or {})
        self.context.consume_turn(name)

        started_at = utc_timestamp()
        t0 = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - t0) * 1000)

        try:
            command = parse_command(name, arguments)
        except ValidationError as e:
            failure = InvalidArgumentsError(
                f"Invalid call to {name}: {_validation_summary(e)}", tool=name
            )
            self._record(name, arguments, started_at, elapsed(), failure=failure)
            return ToolResult(name=name, failure=failure)

        try:
            output = await self._dispatch(command)
        except ToolError as e:
            e.tool = e.tool or name
            e.elapsed_ms = e.elapsed_ms or elapsed()
            self._record(name, arguments, started_at, e.elapsed_ms, failure=e)
            return ToolResult(name=name, failure=e)
        except ScreenshotError as e:
            text = str(e)
            self.context.run_log.record(
                name, arguments, started_at, elapsed(), success=False, result=text,
                error={"kind": "screenshot_error", "tool": name, "target": e.step, "message": e.message},
            )
            return ToolResult(name=name, output=text)
        except asyncio.CancelledError:
            self.context.run_log.record(
                name, arguments, started_at, elapsed(), success=False,
                error={"kind": "cancelled", "tool": name, "message": "Cancelled by run budget"},
            )
            raise
        except Exception as e:
            self.context.run_log.record(
                name, arguments, started_at, elapsed(), success=False,
                error={"kind": type(e).__name__, "tool": name, "message": str(e)},
            )
            raise

        self.context.run_log.record(name, arguments, started_at, elapsed(), success=True, result=output)
        return ToolResult(name=name, output=output)

    def _record(self, name, arguments, started_at, duration_ms, failure: ToolError) -> None:
        self.context.run_log.record(
            name, arguments, started_at, duration_ms, success=False, error=failure.to_dict()
        )

    async def _dispatch(self, command) -> Any:
        if isinstance(command, OpenUrl):
            outcome = await self.navigator.navigate(self.session, command.url)
            return outcome.to_dict()
        elif isinstance(command, Click):
            return await self._click(command)
        elif isinstance(command, TypeText):
            return await self._type_text(command)
        elif isinstance(command, WaitFor):
            return await self._wait_for(command)
        elif isinstance(command, TakeScreenshot):
            artifact = await self.context.sink.capture(self.session, command.step, command.full_page)
            return {"reference": artifact.reference, "step": artifact.step, "filename": artifact.filename}
        raise InvalidArgumentsError(f"No handler for {type(command).__name__}")

    # ── Interaction tools ──────────────────────────────────────────────────

    async def _click(self, command: Click) -> str:
        timeout = self.context.clamp_timeout(command.timeout_ms)
        try:
            await self.session.click(
                command.selector, timeout,
                role=command.role, name=command.name, nth=command.nth,
            )
        except PlaywrightTimeoutError as e:
            raise ActionTimeoutError(
                f"Timed out after {timeout}ms clicking {command.target}",
                tool="click", target=command.target,
            ) from e
        except PlaywrightError as e:
            raise InteractionError(
                f"Click on {command.target} failed: {e.message}",
                tool="click", target=command.target,
            ) from e
        return f"Clicked {command.target}"

    async def _type_text(self, command: TypeText) -> str:
        timeout = self.context.clamp_timeout(command.timeout_ms)
        try:
            await self.session.type_text(
                command.selector, command.text, timeout, delay_ms=self.context.type_delay_ms
            )
        except PlaywrightTimeoutError as e:
            raise ActionTimeoutError(
                f"Timed out after {timeout}ms typing into {command.selector}",
                tool="type_text", target=command.selector,
            ) from e
        except PlaywrightError as e:
            raise InteractionError(
                f"Typing into {command.selector} failed: {e.message}",
                tool="type_text", target=command.selector,
            ) from e
        return f"Filled {command.selector}"

    async def _wait_for(self, command: WaitFor) -> str:
        timeout = self.context.clamp_timeout(command.timeout_ms)
        try:
            await self.session.wait_for(command.selector, timeout)
        except PlaywrightTimeoutError as e:
            raise ElementNotFoundError(
                f"{command.selector} did not appear within {timeout}ms",
                tool="wait_for", target=command.selector,
            ) from e
        except PlaywrightError as e:
            raise InteractionError(
                f"Waiting for {command.selector} failed: {e.message}",
                tool="wait_for", target=command.selector,
            ) from e
        return f"Found {command.selector}"


def _validation_summary(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in TOOL_NAMES)
        parts.append(f"{loc or 'arguments'}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)
