"""Build context set arithmetic."""

from typing import Iterable, Sequence


def difference(all_paths: Sequence[str], ignored: Iterable[str]) -> list[str]:
    """Paths of ``all_paths`` not present in ``ignored``, order preserved.

    Both inputs must use the same path representation; no normalization
    is applied here.
    """
    excluded = set(ignored)
    return [path for path in all_paths if path not in excluded]
