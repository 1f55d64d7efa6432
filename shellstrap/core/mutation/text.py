"""
TextMutator — idempotent edits to line-oriented files.

Every operation follows the same shape:

    read current bytes (missing file = empty)
      → pure transform from ``core.mutation.lines``
      → nothing to do?  return without touching the file
      → otherwise atomic_write the new content

So timestamps and permissions only change when content does, and a
reader never sees half an edit. Content is decoded with
``surrogateescape`` so bytes that are not valid UTF-8 survive untouched.
"""

from __future__ import annotations

import logging
from pathlib import Path

from shellstrap.core.models.regions import Marker
from shellstrap.core.models.state import MutationOutcome
from shellstrap.core.mutation import lines as transforms
from shellstrap.core.persistence.atomic import atomic_write

logger = logging.getLogger(__name__)

_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


def _as_marker(marker: Marker | str) -> Marker:
    return marker if isinstance(marker, Marker) else Marker(start=marker)


def read_lines(path: Path) -> list[str] | None:
    """Lines of ``path``, or ``None`` if it does not exist."""
    text = _read_text(path)
    return None if text is None else transforms.split_lines(text)


def _read_text(path: Path) -> str | None:
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        return None
    return raw.decode(_ENCODING, _ERRORS)


def _read_for_append(path: Path) -> tuple[list[str], bool]:
    """Current lines plus whether the content ended with a newline."""
    text = _read_text(path) or ""
    return transforms.split_lines(text), not text or text.endswith("\n")


def write_lines(path: Path, lines: list[str]) -> None:
    atomic_write(path, transforms.join_lines(lines).encode(_ENCODING, _ERRORS))


def _apply(path: Path, new_lines: list[str] | None, dry_run: bool) -> MutationOutcome:
    if new_lines is None:
        return MutationOutcome.ALREADY_PRESENT
    if not dry_run:
        write_lines(path, new_lines)
    return MutationOutcome.APPLIED


def append_line_once(path: Path, line: str, dry_run: bool = False) -> MutationOutcome:
    """Ensure ``line`` exists verbatim as a whole line of ``path``."""
    path = Path(path)
    current, terminated = _read_for_append(path)
    outcome = _apply(path, transforms.append_line(current, line, terminated), dry_run)
    if outcome.changed:
        logger.debug("Appended line to %s: %s", path, line)
    return outcome


def append_block_once(
    path: Path,
    marker: Marker | str,
    block: str,
    dry_run: bool = False,
) -> MutationOutcome:
    """Append ``block`` unless its sentinel already appears in ``path``."""
    path = Path(path)
    marker = _as_marker(marker)
    current, terminated = _read_for_append(path)
    outcome = _apply(path, transforms.append_block(current, marker, block, terminated), dry_run)
    if outcome is MutationOutcome.ALREADY_PRESENT:
        logger.info("Block already present in %s (%s)", path, marker.start)
    return outcome


def prepend_block_once(
    path: Path,
    marker: Marker | str,
    block: str,
    dry_run: bool = False,
) -> MutationOutcome:
    """Put ``block`` at the top of ``path`` unless its sentinel is present."""
    path = Path(path)
    marker = _as_marker(marker)
    current = read_lines(path) or []
    outcome = _apply(path, transforms.prepend_block(current, marker, block), dry_run)
    if outcome is MutationOutcome.ALREADY_PRESENT:
        logger.info("Block already present in %s (%s)", path, marker.start)
    return outcome


def replace_block(
    path: Path,
    start: str,
    end: str,
    new_block: str,
    dry_run: bool = False,
) -> MutationOutcome:
    """Replace the ``start``..``end`` region of ``path`` with ``new_block``.

    Returns NOT_FOUND (and leaves the file alone) when the file or the
    start sentinel is missing; UNCHANGED when the region already holds
    exactly ``new_block``.
    """
    path = Path(path)
    current = read_lines(path)
    if current is None:
        return MutationOutcome.NOT_FOUND

    new_lines = transforms.replace_block(current, Marker(start=start, end=end), new_block)
    if new_lines is None:
        return MutationOutcome.NOT_FOUND
    if new_lines == current:
        return MutationOutcome.UNCHANGED

    if not dry_run:
        write_lines(path, new_lines)
        logger.debug("Replaced block %s in %s", start, path)
    return MutationOutcome.APPLIED


def upsert_block(
    path: Path,
    marker: Marker,
    block: str,
    dry_run: bool = False,
) -> MutationOutcome:
    """Append ``block`` once, or refresh it in place when it changed.

    A block written without an end sentinel (older installs) is left
    alone: replacing it would swallow everything after it.
    """
    path = Path(path)
    current = read_lines(path) or []
    if not marker.present_in(current):
        return append_block_once(path, marker, block, dry_run=dry_run)
    if not transforms.has_closed_region(current, marker):
        logger.info("Block already present in %s (%s)", path, marker.start)
        return MutationOutcome.ALREADY_PRESENT
    return replace_block(path, marker.start, marker.end, block, dry_run=dry_run)


def strip_carriage_returns(path: Path, dry_run: bool = False) -> MutationOutcome:
    """Drop every CR byte from ``path``; no write at all if there is none."""
    path = Path(path)
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        return MutationOutcome.NOT_FOUND

    fixed = transforms.strip_carriage_returns(raw)
    if fixed is None:
        return MutationOutcome.UNCHANGED

    if not dry_run:
        atomic_write(path, fixed)
        logger.info("Stripped CR line endings: %s", path)
    return MutationOutcome.APPLIED


def create_file_once(path: Path, content: str, dry_run: bool = False) -> MutationOutcome:
    """Create ``path`` with ``content`` unless it already exists."""
    path = Path(path)
    if path.exists() or path.is_symlink():
        return MutationOutcome.ALREADY_PRESENT
    if not dry_run:
        atomic_write(path, content)
    return MutationOutcome.APPLIED
