"""
Adapter base — the contract between install steps and external tools.

Steps never shell out directly: git, installer scripts, downloads and
system package managers are each reached through an adapter. That keeps
every external side effect in one place and lets tests swap in fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class Adapter(ABC):
    """Abstract base class for all adapters.

    To create a new adapter:
        1. Subclass Adapter
        2. Implement name and is_available
        3. Add it to ``Toolbox`` in ``shellstrap.adapters``
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'git', 'fetch')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter's underlying tool is available.

        Should be fast and never raise.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
