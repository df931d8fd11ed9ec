class AnalyticsError(Exception):
    pass


class ValidationError(AnalyticsError):
    """Malformed address or request parameters. Raised before any computation."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class UpstreamUnavailableError(AnalyticsError):
    """Every chain-data source for a request failed."""

    def __init__(self, message: str, *, errors: dict[int, str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or {}


class ComputationError(AnalyticsError):
    pass


class CacheError(AnalyticsError):
    pass


class ConfigurationError(AnalyticsError):
    pass
