"""
Duration Resolver

Maps an operation name to the TTL its cache entries are written with.
"""

from collections.abc import Mapping


class DurationResolver:
    """
    Named durations override a default.

    Usage:
        resolver = DurationResolver(default_ttl=300, durations={"Report": 3600})
        resolver.resolve("Report")   # 3600
        resolver.resolve("Search")   # 300
    """

    def __init__(self, default_ttl: int, durations: Mapping[str, int] | None = None):
        self._default_ttl = default_ttl
        self._durations = dict(durations or {})

    @property
    def default_ttl(self) -> int:
        return self._default_ttl

    def resolve(self, operation_name: str | None) -> int:
        """TTL in seconds for operation_name, or the default."""
        if not operation_name:
            return self._default_ttl
        return self._durations.get(operation_name, self._default_ttl)
