"""
Pure line-sequence transforms behind every text mutation.

Each function takes the current lines of a file and returns the new
lines, or ``None`` when the file must not be touched. Nothing here does
I/O; ``core.mutation.text`` reads, calls one of these, and hands the
result to the atomic writer.

Lines are split on ``\\n`` only. A stray ``\\r`` stays part of its line,
so ``'export X\\r'`` does not count as ``'export X'``.
"""

from __future__ import annotations

from shellstrap.core.models.regions import LineLiteral, Marker, Region


def split_lines(text: str) -> list[str]:
    """Split file content into lines without terminators."""
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def join_lines(lines: list[str]) -> str:
    """Inverse of split_lines; always ends with a newline when non-empty."""
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def block_lines(block: str) -> list[str]:
    return split_lines(block.rstrip("\n") + "\n") if block else []


def contains(lines: list[str], region: Region) -> bool:
    """Whether ``region`` is already present in ``lines``."""
    return region.present_in(lines)


def _with_separator(lines: list[str], terminated: bool = True) -> list[str]:
    # A blank line between existing content and the new entry, but never
    # a leading blank line in a file that was empty. Content without a
    # final newline only gets the newline it was missing.
    if not lines or lines[-1] == "" or not terminated:
        return list(lines)
    return [*lines, ""]


def append_line(lines: list[str], line: str, terminated: bool = True) -> list[str] | None:
    """Append ``line`` unless an identical line exists.

    ``terminated`` says whether the file content ended with a newline.
    """
    literal = LineLiteral(line)
    if contains(lines, literal):
        return None
    return [*_with_separator(lines, terminated), literal.text]


def append_block(
    lines: list[str],
    marker: Marker,
    block: str,
    terminated: bool = True,
) -> list[str] | None:
    """Append ``block`` unless ``marker`` is already present."""
    _require_sentinel(marker, block)
    if contains(lines, marker):
        return None
    return [*_with_separator(lines, terminated), *block_lines(block)]


def prepend_block(lines: list[str], marker: Marker, block: str) -> list[str] | None:
    """Put ``block`` in front of the existing content unless present."""
    _require_sentinel(marker, block)
    if contains(lines, marker):
        return None
    return [*block_lines(block), "", *lines]


def replace_block(lines: list[str], marker: Marker, new_block: str) -> list[str] | None:
    """Swap the region from ``marker.start`` through ``marker.end``.

    The first line containing the start sentinel is replaced by
    ``new_block``; every following line is dropped up to and including the
    first one containing the end sentinel. If no end sentinel follows,
    everything to the end of the file is dropped. Returns ``None`` when the
    start sentinel never occurs.
    """
    if not marker.end:
        raise ValueError("replace_block needs a marker with an end sentinel")

    out: list[str] = []
    found = False
    inside = False
    for line in lines:
        if not found and marker.start in line:
            found = True
            inside = True
            out.extend(block_lines(new_block))
            continue
        if inside:
            if marker.end in line:
                inside = False
            continue
        out.append(line)

    return out if found else None


def has_closed_region(lines: list[str], marker: Marker) -> bool:
    """Whether an end sentinel follows the first start sentinel."""
    if not marker.end:
        return False
    for index, line in enumerate(lines):
        if marker.start in line:
            return any(marker.end in later for later in lines[index + 1:])
    return False


def strip_carriage_returns(data: bytes) -> bytes | None:
    """Remove every CR byte; ``None`` if there is none."""
    if b"\r" not in data:
        return None
    return data.replace(b"\r", b"")


def _require_sentinel(marker: Marker, block: str) -> None:
    if marker.start not in block:
        raise ValueError(f"Block does not contain its own sentinel: {marker.start!r}")
