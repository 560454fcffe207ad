"""
Ordered bag difference.
"""
from typing import Any, Iterable, List


class MultisetDiff:
    @staticmethod
    def subtract(base: Iterable[Any], removals: Iterable[Any]) -> List[Any]:
        """Remove one occurrence of each removal from base, earliest first.

        subtract([1, 2, 3, 4, 1], [1, 1]) -> [2, 3, 4]
        """
        work = list(base)
        for item in removals:
            try:
                work.remove(item)
            except ValueError:
                continue
        return work
