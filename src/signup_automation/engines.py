"""
Backend strategy: picks and launches one of two Chromium configurations.

LocalEngine:       full-featured launch, may run headful for debugging.
ConstrainedEngine: headless-only, reduced-privilege flags for ephemeral
                    serverless hosts (no sandbox, single process, no GPU).

Both return a BrowserSession with the same operations; nothing above this
module checks which one is active except to report it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from playwright.async_api import async_playwright

from . import config
from .browser import BrowserSession, EngineKind
from .errors import LaunchError

logger = logging.getLogger(__name__)


@dataclass
class LaunchOptions:
    """Per-run launch settings shared by both engines."""
    viewport_width: int = config.VIEWPORT_WIDTH
    viewport_height: int = config.VIEWPORT_HEIGHT
    headless: bool = config.HEADLESS
    navigation_timeout_ms: int = config.NAVIGATION_TIMEOUT_MS
    action_timeout_ms: int = config.ACTION_TIMEOUT_MS
    launch_timeout_ms: int = config.LAUNCH_TIMEOUT_MS


class BrowserEngine:
    """Launches Chromium through Playwright and wraps it in a BrowserSession."""

    kind: EngineKind = EngineKind.LOCAL

    def launch_arguments(self, options: LaunchOptions) -> dict:
        raise NotImplementedError

    def page_arguments(self, options: LaunchOptions) -> dict:
        return {
            "viewport": {"width": options.viewport_width, "height": options.viewport_height},
        }

    async def launch(self, options: Optional[LaunchOptions] = None) -> BrowserSession:
        """Start the driver, the browser and one page.

        Any failure tears down whatever already started and is raised as
        LaunchError carrying the engine message. There is no retry here.
        """
        options = options or LaunchOptions()
        playwright = None
        browser = None
        try:
            playwright = await async_playwright().start()
            browser = await playwright.chromium.launch(**self.launch_arguments(options))
            page = await browser.new_page(**self.page_arguments(options))
        except Exception as e:
            logger.error(f"{self.kind.value} engine launch failed: {e}")
            for handle, method in ((browser, "close"), (playwright, "stop")):
                if handle is None:
                    continue
                try:
                    await getattr(handle, method)()
                except Exception as cleanup_exc:
                    logger.warning(f"Error releasing half-started engine: {cleanup_exc}")
            raise LaunchError(self.kind.value, str(e)) from e

        page.set_default_navigation_timeout(options.navigation_timeout_ms)
        page.set_default_timeout(options.action_timeout_ms)

        logger.info(
            f"Browser session started (engine={self.kind.value}, "
            f"viewport={options.viewport_width}x{options.viewport_height})"
        )
        return BrowserSession(
            engine_kind=self.kind,
            _playwright=playwright,
            _browser=browser,
            _page=page,
            viewport_width=options.viewport_width,
            viewport_height=options.viewport_height,
            navigation_timeout_ms=options.navigation_timeout_ms,
            action_timeout_ms=options.action_timeout_ms,
        )


class LocalEngine(BrowserEngine):
    """Unrestricted Chromium for development machines."""

    kind = EngineKind.LOCAL

    def launch_arguments(self, options: LaunchOptions) -> dict:
        return {
            "headless": options.headless,
            "devtools": False,
            "timeout": options.launch_timeout_ms,
        }


class ConstrainedEngine(BrowserEngine):
    """Headless Chromium tuned for restricted, short-lived execution hosts."""

    kind = EngineKind.CONSTRAINED

    LAUNCH_FLAGS = [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--single-process",
        "--no-zygote",
        "--disable-gpu",
        "--disable-dev-shm-usage",
    ]

    def __init__(self, executable_path: Optional[str] = config.CHROMIUM_EXECUTABLE_PATH):
        self.executable_path = executable_path

    def launch_arguments(self, options: LaunchOptions) -> dict:
        # headless is forced regardless of options.headless
        arguments = {
            "headless": True,
            "args": list(self.LAUNCH_FLAGS),
            "timeout": options.launch_timeout_ms,
        }
        if self.executable_path:
            arguments["executable_path"] = self.executable_path
        return arguments

    def page_arguments(self, options: LaunchOptions) -> dict:
        arguments = super().page_arguments(options)
        arguments["ignore_https_errors"] = True
        return arguments


def select_engine(constrained: bool = config.CONSTRAINED_RUNTIME) -> BrowserEngine:
    """Pick the engine once, at session-launch time."""
    if constrained:
        return ConstrainedEngine()
    return LocalEngine()
