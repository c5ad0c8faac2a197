"""
Screenshot sink: captures frames and persists them with a stable reference.

The strategy is fixed per run:
  - FileScreenshotSink writes PNGs to a directory and returns a URL path
  - InlineScreenshotSink returns a data URI, for hosts without writable storage

Filenames are "{timestamp}__{step}.png" with the ISO timestamp's colons and
periods replaced by dashes. A name is never reused within a run and an
existing file is never overwritten.
"""

import base64
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .browser import BrowserSession
from .errors import ScreenshotError
from .run_log import utc_timestamp

logger = logging.getLogger(__name__)

FILE = "file"
INLINE = "inline"


def sanitize_step(step: str) -> str:
    """Lowercase, whitespace to underscores, drop anything unsafe for a filename."""
    safe = re.sub(r"\s+", "_", step.strip()).lower()
    safe = re.sub(r"[^a-z0-9_-]", "", safe)
    return safe or "step"


def filename_for(step: str, now: Optional[datetime] = None) -> str:
    ts = re.sub(r"[:.]", "-", utc_timestamp(now))
    return f"{ts}__{sanitize_step(step)}.png"


@dataclass(frozen=True)
class ScreenshotArtifact:
    """One captured frame and where to find it."""
    step: str
    captured_at: str
    encoding: str
    reference: str
    filename: str
    sequence_index: int

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "capturedAt": self.captured_at,
            "encoding": self.encoding,
            "reference": self.reference,
            "filename": self.filename,
            "sequenceIndex": self.sequence_index,
        }


@dataclass
class ScreenshotSink:
    """Base sink: capture, persist, remember. Subclasses decide persistence."""
    encoding: str = ""
    artifacts: list = field(default_factory=list)
    _used_names: set = field(default_factory=set, repr=False)

    async def capture(
        self, session: BrowserSession, step: str, full_page: bool = False
    ) -> ScreenshotArtifact:
        """Grab a frame regardless of what happened before.

        Raises ScreenshotError; the take_screenshot tool turns it into text.
        """
        now = datetime.now(timezone.utc)
        try:
            image = await session.screenshot(full_page=full_page)
            filename = self._unique_name(filename_for(step, now))
            reference = self._persist(filename, image)
        except ScreenshotError:
            raise
        except Exception as e:
            raise ScreenshotError(step, str(e)) from e

        self._used_names.add(filename)
        artifact = ScreenshotArtifact(
            step=step,
            captured_at=utc_timestamp(now),
            encoding=self.encoding,
            reference=reference,
            filename=filename,
            sequence_index=len(self.artifacts),
        )
        self.artifacts.append(artifact)
        return artifact

    def _unique_name(self, filename: str) -> str:
        if filename not in self._used_names and not self._exists(filename):
            return filename
        stem = filename[: -len(".png")]
        n = 2
        while f"{stem}_{n}.png" in self._used_names or self._exists(f"{stem}_{n}.png"):
            n += 1
        return f"{stem}_{n}.png"

    def _exists(self, filename: str) -> bool:
        return False

    def _persist(self, filename: str, image: bytes) -> str:
        raise NotImplementedError


@dataclass
class FileScreenshotSink(ScreenshotSink):
    encoding: str = FILE
    output_dir: str = ""
    url_prefix: str = "/screenshots"

    def __post_init__(self):
        if not self.output_dir:
            raise ValueError("FileScreenshotSink needs an output_dir")

    def ensure_output_dir(self) -> str:
        os.makedirs(self.output_dir, exist_ok=True)
        return self.output_dir

    def _exists(self, filename: str) -> bool:
        return os.path.exists(os.path.join(self.output_dir, filename))

    def _persist(self, filename: str, image: bytes) -> str:
        self.ensure_output_dir()
        path = os.path.join(self.output_dir, filename)
        # "x" refuses to clobber a file that appeared since the name was picked
        with open(path, "xb") as fh:
            fh.write(image)
        logger.debug(f"Screenshot written to {path}")
        return f"{self.url_prefix.rstrip('/')}/{filename}"


@dataclass
class InlineScreenshotSink(ScreenshotSink):
    encoding: str = INLINE

    def _persist(self, filename: str, image: bytes) -> str:
        return "data:image/png;base64," + base64.b64encode(image).decode("ascii")


def create_sink(mode: str, output_dir: str = "", url_prefix: str = "/screenshots") -> ScreenshotSink:
    """Build the run's sink. Called once per run."""
    if mode == FILE:
        sink = FileScreenshotSink(output_dir=output_dir, url_prefix=url_prefix)
        sink.ensure_output_dir()
        return sink
    if mode == INLINE:
        return InlineScreenshotSink()
    raise ValueError(f"Unknown screenshot mode '{mode}' (expected 'file' or 'inline')")
