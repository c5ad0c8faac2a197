"""
Unit Tests for backend selection and launch (Feature: constrained-engine)
"""

from unittest.mock import MagicMock, patch

import pytest

from conftest import FakeBrowser, FakePage, FakePlaywright


def _patched_playwright(fake: FakePlaywright):
    starter = MagicMock()

    async def start():
        return fake

    starter.start = start
    return patch("signup_automation.engines.async_playwright", return_value=starter)


class TestSelectEngine:
    """Tests for select_engine."""

    def test_local_by_default(self):
        """Without the serverless flag the local engine is chosen."""
        from signup_automation.browser import EngineKind
        from signup_automation.engines import select_engine

        assert select_engine(constrained=False).kind == EngineKind.LOCAL

    def test_constrained_when_flagged(self):
        """The serverless flag selects the constrained engine."""
        from signup_automation.browser import EngineKind
        from signup_automation.engines import select_engine

        assert select_engine(constrained=True).kind == EngineKind.CONSTRAINED


class TestLaunchArguments:
    """Tests for each engine's Chromium launch arguments."""

    def test_local_respects_headless_option(self):
        """The local engine may run headful and adds no restriction flags."""
        from signup_automation.engines import LaunchOptions, LocalEngine

        args = LocalEngine().launch_arguments(LaunchOptions(headless=False))
        assert args["headless"] is False
        assert "args" not in args

    def test_constrained_forces_headless_and_flags(self):
        """The constrained engine is always headless with reduced-privilege flags."""
        from signup_automation.engines import ConstrainedEngine, LaunchOptions

        args = ConstrainedEngine(executable_path="/opt/chromium").launch_arguments(LaunchOptions(headless=False))
        assert args["headless"] is True
        assert "--no-sandbox" in args["args"]
        assert "--single-process" in args["args"]
        assert args["executable_path"] == "/opt/chromium"

    def test_constrained_without_executable(self):
        """No executable_path is passed when none is configured."""
        from signup_automation.engines import ConstrainedEngine, LaunchOptions

        args = ConstrainedEngine(executable_path=None).launch_arguments(LaunchOptions())
        assert "executable_path" not in args


class TestLaunch:
    """Tests for BrowserEngine.launch."""

    @pytest.mark.asyncio
    async def test_launch_returns_live_session(self):
        """A successful launch yields a live session with viewport and timeouts applied."""
        from signup_automation.browser import EngineKind
        from signup_automation.engines import LaunchOptions, LocalEngine

        page = FakePage()
        fake = FakePlaywright(FakeBrowser(page))
        with _patched_playwright(fake):
            session = await LocalEngine().launch(LaunchOptions(navigation_timeout_ms=30000, action_timeout_ms=10000))

        assert session.is_live
        assert session.engine_kind == EngineKind.LOCAL
        assert fake.chromium.browser.new_page_kwargs == {"viewport": {"width": 1280, "height": 720}}
        assert page.default_timeouts == {"navigation": 30000, "action": 10000}

    @pytest.mark.asyncio
    async def test_constrained_page_ignores_https_errors(self):
        """Constrained pages tolerate certificate errors."""
        from signup_automation.engines import ConstrainedEngine

        fake = FakePlaywright()
        with _patched_playwright(fake):
            session = await ConstrainedEngine(executable_path=None).launch()

        assert session.engine_kind.value == "constrained"
        assert fake.chromium.browser.new_page_kwargs["ignore_https_errors"] is True

    @pytest.mark.asyncio
    async def test_launch_failure_raises_launch_error_and_stops_driver(self):
        """A failed browser launch raises LaunchError and stops the Playwright driver."""
        from signup_automation.engines import LocalEngine
        from signup_automation.errors import LaunchError

        fake = FakePlaywright(launch_error=RuntimeError("Executable doesn't exist"))
        with _patched_playwright(fake):
            with pytest.raises(LaunchError) as exc_info:
                await LocalEngine().launch()

        assert exc_info.value.engine_kind == "local"
        assert "Executable doesn't exist" in exc_info.value.message
        assert fake.stop_calls == 1
