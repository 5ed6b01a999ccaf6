"""Bookkeeping of paths currently governed by the private marker."""

from typing import Iterator


class PathTracker:
    """
    Set of paths believed to carry the private marker.

    Membership is a hint, not the truth: batch operations re-read live
    content before acting on a tracked path.
    """

    def __init__(self):
        self._paths: set[str] = set()

    def mark_private(self, path: str) -> None:
        self._paths.add(path)

    def unmark_private(self, path: str) -> None:
        self._paths.discard(path)

    def is_tracked(self, path: str) -> bool:
        return path in self._paths

    def all_tracked(self) -> list[str]:
        """Tracked paths in sorted order."""
        return sorted(self._paths)

    def clear(self) -> None:
        self._paths.clear()

    def __contains__(self, path: object) -> bool:
        return path in self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def __iter__(self) -> Iterator[str]:
        return iter(self.all_tracked())
