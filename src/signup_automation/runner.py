"""
Run boundary for one signup automation.

    generate credentials → launch session → driver issues tool calls → close session

Everything an external caller needs comes back in a RunResult, on success and
on failure alike. Any error escaping the driver is caught here exactly once;
the browser is released exactly once in a cleanup step that never raises.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from . import config
from .context import RunContext
from .credentials import CredentialSet, generate_credentials
from .drivers import AgentDriver
from .engines import BrowserEngine, LaunchOptions, select_engine
from .navigator import RetryPolicy
from .run_log import RunLog
from .screenshots import INLINE, create_sink
from .tools import Toolbox

logger = logging.getLogger(__name__)

DriverFactory = Callable[[CredentialSet], AgentDriver]


class RunResult(BaseModel):
    """JSON-serialisable outcome of one run."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    run_id: str
    success: bool
    dummy_data: Optional[CredentialSet] = None
    final_output: str = ""
    screenshots: list[dict] = Field(default_factory=list)
    logs: list[str] = Field(default_factory=list)
    tool_calls: list[dict] = Field(default_factory=list)
    engine: str = ""
    error: Optional[str] = None
    duration_ms: int = 0

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


def new_run_context(
    screenshot_mode: Optional[str] = None,
    screenshot_dir: Optional[str] = None,
    url_prefix: Optional[str] = None,
    **kwargs,
) -> RunContext:
    """Fresh per-run context.

    Unset screenshot settings are read from config at call time. A sink that
    can't be built (unknown mode, missing or unwritable directory) falls back
    to inline screenshots and the fallback is noted in the run log.
    """
    screenshot_mode = config.SCREENSHOT_MODE if screenshot_mode is None else screenshot_mode
    screenshot_dir = config.SCREENSHOT_DIR if screenshot_dir is None else screenshot_dir
    url_prefix = config.SCREENSHOT_URL_PREFIX if url_prefix is None else url_prefix

    run_log = kwargs.pop("run_log", None) or RunLog()
    try:
        sink = create_sink(screenshot_mode, screenshot_dir, url_prefix)
    except (OSError, ValueError) as e:
        run_log.append(
            f"Screenshot sink '{screenshot_mode}' at {screenshot_dir!r} unavailable ({e}); using inline screenshots",
            logging.WARNING,
        )
        sink = create_sink(INLINE)
    kwargs.setdefault("retry_policy", RetryPolicy())
    return RunContext(sink=sink, run_log=run_log, **kwargs)


async def run_automation(
    driver_factory: DriverFactory,
    engine: Optional[BrowserEngine] = None,
    launch_options: Optional[LaunchOptions] = None,
    context: Optional[RunContext] = None,
    credentials: Optional[CredentialSet] = None,
    credential_generator: Callable[[], CredentialSet] = generate_credentials,
) -> RunResult:
    """Execute one run end-to-end and always return a RunResult."""
    started = time.monotonic()
    engine = engine or select_engine()
    context = context or new_run_context()
    run_log = context.run_log
    run_log.set_engine(engine.kind.value)

    session = None
    success = False
    final_output = ""
    error: Optional[str] = None

    try:
        credentials = credentials or credential_generator()
        driver = driver_factory(credentials)

        session = await engine.launch(launch_options)
        run_log.append(f"Browser launched (run {context.run_id})")

        toolbox = Toolbox(session, context)
        final_output = await asyncio.wait_for(
            driver.run(toolbox),
            timeout=context.remaining_ms() / 1000,
        )
        success = True
        run_log.append(f"Driver finished after {context.turns_used} tool calls")

    except asyncio.TimeoutError:
        error = f"Run budget exhausted: wall-clock limit ({context.timeout_seconds:g}s) reached"
        run_log.append(error, logging.ERROR)
    except Exception as exc:
        error = f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__
        logger.exception(f"Automation run {context.run_id} failed: {error}")
        run_log.append(f"Run failed: {error}", logging.ERROR)

    finally:
        if session is not None:
            await release_session(session, run_log)

    return RunResult(
        run_id=context.run_id,
        success=success,
        dummy_data=credentials,
        final_output=final_output or "",
        screenshots=[artifact.to_dict() for artifact in context.sink.artifacts],
        logs=run_log.snapshot(),
        tool_calls=[inv.to_dict() for inv in run_log.invocations],
        engine=engine.kind.value,
        error=error,
        duration_ms=int((time.monotonic() - started) * 1000),
    )


async def release_session(session, run_log: RunLog) -> None:
    """Close the browser. Failures are logged, never raised."""
    try:
        await session.close()
        run_log.append("Browser closed")
    except Exception as e:
        run_log.append(f"Cleanup failed: {e}", logging.ERROR)
