from statsd import StatsClient


class ScopedStatsClient:
    """
    A wrapper around the statsd client which prefixes every metric with a
    scope. Metrics are dropped silently until a client is installed with
    set_stats_client().
    """

    _client: StatsClient | None = None

    def __init__(self, prefix: str | None = None):
        self._prefix = prefix

    def get_stats_client(self, scope: str) -> "ScopedStatsClient":
        if not self._prefix:
            prefix = scope
        else:
            prefix = f"{self._prefix}.{scope}"
        return ScopedStatsClient(prefix)

    @staticmethod
    def is_enabled() -> bool:
        return ScopedStatsClient._client is not None

    def _scoped(self, stat: str) -> str:
        if self._prefix:
            return f"{self._prefix}.{stat}"
        return stat

    def incr(self, stat: str, count: int = 1, rate: float = 1.0) -> None:
        if ScopedStatsClient._client is not None:
            ScopedStatsClient._client.incr(self._scoped(stat), count, rate)

    def gauge(self, stat: str, value: int, rate: float = 1.0) -> None:
        if ScopedStatsClient._client is not None:
            ScopedStatsClient._client.gauge(self._scoped(stat), value, rate)


_scoped_stats_client = ScopedStatsClient()


def get_stats_client(prefix: str) -> ScopedStatsClient:
    return _scoped_stats_client.get_stats_client(prefix)


def set_stats_client(stats_client: StatsClient | None) -> None:
    ScopedStatsClient._client = stats_client
