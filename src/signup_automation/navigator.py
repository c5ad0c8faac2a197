"""
Retrying navigator.

Separates two questions:
  1. Did the browser load a page at all?        (hard failure → NavigationError)
  2. Does that page show the content we expect? (soft signal → form_detected)

Anti-bot interstitials and slow client renders are expected, so question 2 is
answered with a bounded probe loop: probe, and if the probe fails, sleep the
backoff and reload before probing again.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from . import config
from .browser import BrowserSession
from .errors import NavigationError, SessionClosedError
from .run_log import RunLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = config.RETRY_MAX_ATTEMPTS
    backoff_ms: int = config.RETRY_BACKOFF_MS
    probe_selector: str = config.PROBE_SELECTOR
    probe_timeout_ms: int = config.PROBE_TIMEOUT_MS
    navigation_timeout_ms: int = config.NAVIGATION_TIMEOUT_MS


@dataclass(frozen=True)
class NavigationOutcome:
    title: str
    final_url: str
    form_detected: bool
    attempts: int = 1

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "finalUrl": self.final_url,
            "formDetected": self.form_detected,
        }


class RetryingNavigator:
    """Navigation wrapped in a readiness-probe retry loop."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        run_log: Optional[RunLog] = None,
    ):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._log = run_log

    def _note(self, message: str, level: int = logging.INFO) -> None:
        if self._log is not None:
            self._log.append(message, level)
        else:
            logger.log(level, message)

    async def navigate(self, session: BrowserSession, url: str) -> NavigationOutcome:
        policy = self.policy
        started = time.monotonic()
        try:
            await session.goto(url, timeout_ms=policy.navigation_timeout_ms)
        except SessionClosedError:
            raise
        except Exception as e:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            raise NavigationError(
                f"Navigation to {url} failed: {e}",
                tool="open_url",
                target=url,
                elapsed_ms=elapsed_ms,
            ) from e

        form_detected = False
        attempt = 0
        for attempt in range(1, policy.max_attempts + 1):
            if await self._probe(session):
                form_detected = True
                break

            self._note(
                f"Probe {attempt}/{policy.max_attempts} for {policy.probe_selector} failed on {url}",
                logging.WARNING,
            )
            if attempt == policy.max_attempts:
                break

            await self._sleep(policy.backoff_ms / 1000)
            try:
                await session.reload(timeout_ms=policy.navigation_timeout_ms)
            except Exception as e:
                # The page we had is still there; the next probe decides.
                self._note(f"Reload {attempt} failed: {e}", logging.WARNING)

        title = ""
        try:
            title = await session.title()
        except Exception as e:
            logger.debug(f"Could not read page title: {e}")

        outcome = NavigationOutcome(
            title=title,
            final_url=session.current_url,
            form_detected=form_detected,
            attempts=attempt,
        )
        if not form_detected:
            self._note(
                f"Form not detected at {outcome.final_url} after {attempt} probes",
                logging.WARNING,
            )
        return outcome

    async def _probe(self, session: BrowserSession) -> bool:
        try:
            await session.wait_for(self.policy.probe_selector, timeout_ms=self.policy.probe_timeout_ms)
            return True
        except SessionClosedError:
            raise
        except Exception as e:
            logger.debug(f"Readiness probe miss: {e}")
            return False
