"""
Browser session owned by a single automation run.

Wraps one Playwright browser and one page behind the small set of primitives
the tools need: navigate, reload, wait, click, type, screenshot. The session
never decides policy (retries, error mapping); it only talks to the engine.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .errors import CleanupError, SessionClosedError

logger = logging.getLogger(__name__)


class EngineKind(str, Enum):
    """Which backend variant launched the session."""
    LOCAL = "local"
    CONSTRAINED = "constrained"


@dataclass
class BrowserSession:
    """Exclusive owner of one browser instance and one page for a run."""
    engine_kind: EngineKind
    _playwright: Any = field(default=None, repr=False)
    _browser: Any = field(default=None, repr=False)
    _page: Any = field(default=None, repr=False)
    viewport_width: int = 1280
    viewport_height: int = 720
    navigation_timeout_ms: int = 45000
    action_timeout_ms: int = 10000
    _closed: bool = field(default=False, repr=False)

    @property
    def is_live(self) -> bool:
        return not self._closed and self._page is not None

    @property
    def page(self):
        """The live page; the page handle is only valid while the browser is open."""
        if not self.is_live:
            raise SessionClosedError("Browser session is not live")
        return self._page

    @property
    def current_url(self) -> str:
        return self.page.url

    async def title(self) -> str:
        return await self.page.title()

    # ── Navigation ─────────────────────────────────────────────────────────

    async def goto(self, url: str, timeout_ms: Optional[int] = None):
        """Navigate and wait for DOMContentLoaded."""
        return await self.page.goto(
            url,
            wait_until="domcontentloaded",
            timeout=timeout_ms or self.navigation_timeout_ms,
        )

    async def reload(self, timeout_ms: Optional[int] = None):
        return await self.page.reload(
            wait_until="domcontentloaded",
            timeout=timeout_ms or self.navigation_timeout_ms,
        )

    # ── Interaction ────────────────────────────────────────────────────────

    async def wait_for(self, selector: str, timeout_ms: Optional[int] = None) -> None:
        """Wait until the selector is attached to the DOM."""
        await self.page.wait_for_selector(
            selector,
            state="attached",
            timeout=timeout_ms or self.action_timeout_ms,
        )

    def locate(
        self,
        selector: Optional[str] = None,
        role: Optional[str] = None,
        name: Optional[str] = None,
        nth: int = 0,
    ):
        """Locator for a CSS selector, or for an accessible role and name."""
        page = self.page
        if selector:
            locator = page.locator(selector)
        elif role and name:
            locator = page.get_by_role(role, name=name, exact=False)
        else:
            raise ValueError("locate() needs a selector or a role and name")
        return locator.nth(nth)

    async def click(
        self,
        selector: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        *,
        role: Optional[str] = None,
        name: Optional[str] = None,
        nth: int = 0,
    ) -> None:
        """Wait for the target to attach, then click it. Both steps share timeout_ms."""
        timeout_ms = timeout_ms or self.action_timeout_ms
        locator = self.locate(selector, role=role, name=name, nth=nth)
        started = time.monotonic()
        await locator.wait_for(state="attached", timeout=timeout_ms)
        await locator.click(timeout=_remaining_ms(timeout_ms, started))

    async def type_text(
        self,
        selector: str,
        text: str,
        timeout_ms: Optional[int] = None,
        delay_ms: int = 100,
    ) -> None:
        """Wait for the field, focus it, then type one character at a time.

        Per-key entry fires the same input events a person would, so
        client-side validators see every keystroke.
        """
        page = self.page
        timeout_ms = timeout_ms or self.action_timeout_ms
        started = time.monotonic()
        await page.wait_for_selector(selector, state="attached", timeout=timeout_ms)
        await page.focus(selector, timeout=_remaining_ms(timeout_ms, started))
        await page.keyboard.type(text, delay=delay_ms)

    async def screenshot(self, full_page: bool = False) -> bytes:
        """Capture the current frame as PNG bytes."""
        return await self.page.screenshot(full_page=full_page, type="png")

    # ── Teardown ───────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close page, browser and driver once. Later calls are no-ops.

        Every handle is released even if an earlier one fails; the failures
        are collected into one CleanupError.
        """
        if self._closed:
            return
        self._closed = True

        failures = []
        for label, handle, method in (
            ("page", self._page, "close"),
            ("browser", self._browser, "close"),
            ("playwright", self._playwright, "stop"),
        ):
            if handle is None:
                continue
            try:
                await getattr(handle, method)()
            except Exception as e:
                failures.append(f"{label}: {e}")

        self._page = None
        self._browser = None
        self._playwright = None
        logger.info(f"Browser session stopped (engine={self.engine_kind.value})")

        if failures:
            raise CleanupError("; ".join(failures))


def _remaining_ms(total_ms: int, started: float) -> int:
    return max(1, total_ms - int((time.monotonic() - started) * 1000))
