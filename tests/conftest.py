"""
Pytest Configuration and Fixtures

Provides an in-memory stand-in for the Playwright page, browser and driver,
plus per-run contexts wired to it. Shared by unit and integration tests.
"""

import pytest
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from signup_automation.browser import BrowserSession, EngineKind
from signup_automation.credentials import CredentialSet
from signup_automation.engines import BrowserEngine
from signup_automation.errors import LaunchError
from signup_automation.runner import new_run_context
from signup_automation.tools import Toolbox

SIGNUP_SELECTORS = {
    "#firstName",
    "#lastName",
    "#email",
    "#password",
    "#confirmPassword",
    "button[type='submit']",
}

SIGNUP_ROLES = [
    ("button", "Create account"),
    ("link", "Sign in"),
    ("link", "Terms of service"),
]

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


# ==============================================================================
# Fake Playwright objects
# ==============================================================================

class FakeKeyboard:
    def __init__(self, page: "FakePage"):
        self._page = page

    async def type(self, text: str, delay: float = 0):
        self._page.calls.append(("keyboard.type", text, delay))
        target = self._page.focused
        self._page.values[target] = self._page.values.get(target, "") + text


class FakeLocator:
    """Locator over the fake page; `matches` is how many elements it resolves to."""

    def __init__(self, page: "FakePage", label: str, matches: int):
        self._page = page
        self.label = label
        self.matches = matches

    def nth(self, index: int) -> "FakeLocator":
        label = self.label if index == 0 else f"{self.label}[{index}]"
        return FakeLocator(self._page, label, 1 if index < self.matches else 0)

    def _require(self, timeout):
        if not self.matches:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {self.label}")

    async def wait_for(self, state=None, timeout=None):
        self._page.calls.append(("wait_for_selector", self.label, timeout))
        self._require(timeout)

    async def click(self, timeout=None):
        self._page.calls.append(("click", self.label, timeout))
        if self._page.click_error:
            raise self._page.click_error
        self._require(timeout)


class FakePage:
    """Implements the subset of playwright.async_api.Page the session uses."""

    def __init__(
        self,
        selectors=None,
        roles=None,
        title: str = "Sign Up",
        render_after_reloads: Optional[int] = None,
    ):
        self.present = set(SIGNUP_SELECTORS if selectors is None else selectors)
        self.roles = list(SIGNUP_ROLES if roles is None else roles)
        self.url = "about:blank"
        self._title = title
        # When set, the form only shows up after this many reloads
        self.render_after_reloads = render_after_reloads
        if render_after_reloads is not None:
            self.present.discard("#firstName")

        self.calls = []
        self.values = {}
        self.focused = None
        self.reloads = 0
        self.close_calls = 0
        self.default_timeouts = {}
        self.keyboard = FakeKeyboard(self)

        self.goto_error: Optional[Exception] = None
        self.click_error: Optional[Exception] = None
        self.screenshot_error: Optional[Exception] = None
        self.close_error: Optional[Exception] = None

    def _require(self, selector: str, timeout):
        if selector not in self.present:
            raise PlaywrightTimeoutError(
                f"Timeout {timeout}ms exceeded waiting for locator('{selector}')"
            )

    async def goto(self, url, wait_until=None, timeout=None):
        self.calls.append(("goto", url, wait_until, timeout))
        if self.goto_error:
            raise self.goto_error
        self.url = url

    async def reload(self, wait_until=None, timeout=None):
        self.calls.append(("reload", wait_until, timeout))
        self.reloads += 1
        if self.render_after_reloads is not None and self.reloads >= self.render_after_reloads:
            self.present.add("#firstName")

    async def wait_for_selector(self, selector, state=None, timeout=None):
        self.calls.append(("wait_for_selector", selector, timeout))
        self._require(selector, timeout)

    def locator(self, selector):
        return FakeLocator(self, selector, 1 if selector in self.present else 0)

    def get_by_role(self, role, name=None, exact=False):
        wanted = (name or "").lower()
        matches = sum(1 for r, n in self.roles if r == role and wanted in n.lower())
        return FakeLocator(self, f"role={role} name={name}", matches)

    async def focus(self, selector, timeout=None):
        self.calls.append(("focus", selector, timeout))
        self._require(selector, timeout)
        self.focused = selector

    async def screenshot(self, full_page=False, type="png"):
        self.calls.append(("screenshot", full_page))
        if self.screenshot_error:
            raise self.screenshot_error
        return PNG_BYTES

    async def title(self):
        return self._title

    async def close(self):
        self.close_calls += 1
        if self.close_error:
            raise self.close_error

    def set_default_navigation_timeout(self, ms):
        self.default_timeouts["navigation"] = ms

    def set_default_timeout(self, ms):
        self.default_timeouts["action"] = ms

    def actions(self):
        """Page calls minus the readiness waits, for ordering assertions."""
        return [c for c in self.calls if c[0] != "wait_for_selector"]


class FakeBrowser:
    def __init__(self, page: Optional[FakePage] = None):
        self.page = page or FakePage()
        self.close_calls = 0
        self.new_page_kwargs = None

    async def new_page(self, **kwargs):
        self.new_page_kwargs = kwargs
        return self.page

    async def close(self):
        self.close_calls += 1


class FakeChromium:
    def __init__(self, browser: FakeBrowser, error: Optional[Exception] = None):
        self.browser = browser
        self.error = error
        self.launch_kwargs = None

    async def launch(self, **kwargs):
        self.launch_kwargs = kwargs
        if self.error:
            raise self.error
        return self.browser


class FakePlaywright:
    def __init__(self, browser: Optional[FakeBrowser] = None, launch_error: Optional[Exception] = None):
        self.chromium = FakeChromium(browser or FakeBrowser(), launch_error)
        self.stop_calls = 0

    async def stop(self):
        self.stop_calls += 1


class FakeEngine(BrowserEngine):
    """Engine that hands out a session over the fake page instead of launching Chromium."""

    def __init__(
        self,
        page: Optional[FakePage] = None,
        kind: EngineKind = EngineKind.LOCAL,
        launch_error: Optional[str] = None,
    ):
        self.kind = kind
        self.page = page or FakePage()
        self.browser = FakeBrowser(self.page)
        self.playwright = FakePlaywright(self.browser)
        self.launch_error = launch_error
        self.launches = 0

    async def launch(self, options=None) -> BrowserSession:
        self.launches += 1
        if self.launch_error:
            raise LaunchError(self.kind.value, self.launch_error)
        return BrowserSession(
            engine_kind=self.kind,
            _playwright=self.playwright,
            _browser=self.browser,
            _page=self.page,
        )

    def cleanup_counts(self):
        return (self.page.close_calls, self.browser.close_calls, self.playwright.stop_calls)


class RecordingSleep:
    """Stands in for asyncio.sleep; records requested delays and returns at once."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def fake_page():
    return FakePage()


@pytest.fixture
def fake_engine(fake_page):
    return FakeEngine(fake_page)


@pytest.fixture
def session(fake_engine):
    return BrowserSession(
        engine_kind=EngineKind.LOCAL,
        _playwright=fake_engine.playwright,
        _browser=fake_engine.browser,
        _page=fake_engine.page,
    )


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def inline_context(recording_sleep):
    return new_run_context(screenshot_mode="inline", sleep=recording_sleep, type_delay_ms=0)


@pytest.fixture
def file_context(tmp_path, recording_sleep):
    return new_run_context(
        screenshot_mode="file",
        screenshot_dir=str(tmp_path / "screenshots"),
        url_prefix="/screenshots",
        sleep=recording_sleep,
        type_delay_ms=0,
    )


@pytest.fixture
def toolbox(session, inline_context):
    return Toolbox(session, inline_context)


@pytest.fixture
def credentials():
    return CredentialSet(
        first_name="Ann",
        last_name="Lee",
        email="ann.lee42@example.com",
        password="Str0ng!Pass1",
        confirm_password="Str0ng!Pass1",
    )


@pytest.fixture
def playwright_error():
    return PlaywrightError("Element is not attached to the DOM")
