"""
Managed regions — the two kinds of thing shellstrap owns inside a file
it does not otherwise own.

    LineLiteral   a whole line, matched by exact string equality
    Marker        a block, identified by its start sentinel

Identity is the text, never the position. Both types are frozen so they
can be used as dictionary keys and compared by value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class LineLiteral:
    """A single line that must exist verbatim."""

    text: str

    def __post_init__(self) -> None:
        if "\n" in self.text:
            raise ValueError("LineLiteral must not contain a newline")

    def present_in(self, lines: list[str]) -> bool:
        return self.text in lines


@dataclass(frozen=True)
class Marker:
    """A sentinel-delimited block.

    ``start`` is searched as a substring of each line. ``end`` is only
    needed for in-place replacement; appends detect presence by ``start``
    alone.
    """

    start: str
    end: str = ""

    def __post_init__(self) -> None:
        if not self.start:
            raise ValueError("Marker start sentinel must not be empty")

    @classmethod
    def named(cls, name: str) -> Marker:
        """Build the ``# ---- NAME ----`` / ``# ---- /NAME ----`` pair."""
        return cls(start=f"# ---- {name} ----", end=f"# ---- /{name} ----")

    def present_in(self, lines: list[str]) -> bool:
        return any(self.start in line for line in lines)


Region = Union[LineLiteral, Marker]
