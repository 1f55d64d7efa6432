"""
Fetch adapter — bytes from a URL or a local path.

Sources:
    file:///abs/path    local file
    ~/x, /abs, ./rel    local file (``~`` expanded) if it exists
    http(s)://...       downloaded with urllib

Writes to a destination always go through the atomic writer, so a
failed download never leaves a partial file behind. Local payloads are
additionally stripped of CR bytes (they are usually hand-edited config
files that may have passed through Windows).
"""

from __future__ import annotations

import logging
import os
import tempfile
import urllib.error
import urllib.request
from pathlib import Path

from shellstrap import __version__
from shellstrap.adapters.base import Adapter
from shellstrap.adapters.shell.command import CommandResult, CommandRunner
from shellstrap.core.mutation.lines import strip_carriage_returns
from shellstrap.core.persistence.atomic import atomic_write

logger = logging.getLogger(__name__)

_USER_AGENT = f"shellstrap/{__version__}"
_CHUNK = 65536


class FetchError(RuntimeError):
    """A source could not be read or downloaded."""


class Fetcher(Adapter):
    """Download provider."""

    def __init__(self, runner: CommandRunner | None = None):
        self._runner = runner or CommandRunner()

    @property
    def name(self) -> str:
        return "fetch"

    def is_available(self) -> bool:
        return True  # urllib ships with Python

    # ── Source resolution ───────────────────────────────────────

    @staticmethod
    def local_path(source: str) -> Path | None:
        """The local file ``source`` names, or None for a remote source."""
        if source.startswith("file://"):
            return Path(source[len("file://"):])
        if "://" in source:
            return None
        return Path(os.path.expanduser(source))

    # ── Operations ──────────────────────────────────────────────

    def fetch(self, source: str) -> bytes:
        local = self.local_path(source)
        if local is not None:
            if not local.is_file():
                raise FetchError(f"Local file not found: {local}")
            return local.read_bytes()
        return b"".join(self._stream(source))

    def fetch_to(self, source: str, dest: Path, mode: int | None = None) -> Path:
        """Install ``source`` at ``dest`` atomically."""
        dest = Path(dest)
        local = self.local_path(source)
        if local is not None:
            data = self.fetch(source)
            data = strip_carriage_returns(data) or data
            atomic_write(dest, data, mode=mode)
        else:
            def producer(f):
                for chunk in self._stream(source):
                    f.write(chunk)

            atomic_write(dest, producer, mode=mode)
        logger.debug("Fetched %s -> %s", source, dest)
        return dest

    def fetch_and_run(
        self,
        url: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        """Download an installer script to a temp file and run it with bash."""
        fd, tmp_name = tempfile.mkstemp(prefix="install-script.")
        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                for chunk in self._stream(url):
                    f.write(chunk)
            return self._runner.run_bash_script(tmp, args=args, env=env)
        finally:
            tmp.unlink(missing_ok=True)

    # ── Helpers ─────────────────────────────────────────────────

    def _stream(self, url: str):
        request = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
        try:
            with urllib.request.urlopen(request) as resp:
                for chunk in iter(lambda: resp.read(_CHUNK), b""):
                    yield chunk
        except (urllib.error.URLError, OSError, ValueError) as e:
            raise FetchError(f"Download failed: {url}: {e}") from e
