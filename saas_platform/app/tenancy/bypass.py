"""Central-route bypass.

Paths matching a configured prefix skip tenant resolution and run against
the central database.
"""

from collections.abc import Iterable


def _normalize_path(path: str) -> str:
    return path.lstrip("/")


def _normalize_pattern(pattern: str) -> str:
    # "api/v1/central/*" -> "api/v1/central/"
    return pattern.strip().lstrip("/").rstrip("*")


class CentralRouteMatcher:
    """Prefix matcher for central (non-tenant) routes.

    Prefixes are independent; any match bypasses tenant resolution. A bare
    pattern such as "health" only matches at a path segment boundary, so
    "/health" and "/health/live" match but "/healthcare" does not.
    """

    def __init__(self, patterns: Iterable[str]) -> None:
        self._prefixes = tuple(p for p in (_normalize_pattern(x) for x in patterns) if p)

    @property
    def prefixes(self) -> tuple[str, ...]:
        return self._prefixes

    def matches(self, path: str) -> bool:
        """Return True if `path` should bypass tenant resolution."""
        path = _normalize_path(path)
        for prefix in self._prefixes:
            if prefix.endswith("/"):
                # "api/v1/central" itself matches the "api/v1/central/" prefix
                if path.startswith(prefix) or path == prefix.rstrip("/"):
                    return True
            elif path == prefix or path.startswith(prefix + "/"):
                return True
        return False
