class AppError(Exception):
    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(AppError):
    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} '{resource_id}' not found", code="NOT_FOUND")


class ValidationError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="VALIDATION_ERROR")


class ProviderSoftError(AppError):
    """A 200 response whose body carries a rate-limit or error sentinel instead of data."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}", code="PROVIDER_SOFT_ERROR")


class ProviderTransportError(AppError):
    def __init__(self, provider: str, message: str, status_code: int | None = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}", code="PROVIDER_TRANSPORT_ERROR")


class DataInsufficientError(AppError):
    def __init__(self, ticker: str, range_: str):
        self.ticker = ticker
        self.range = range_
        super().__init__(
            f"Insufficient data for {ticker} in range {range_}", code="DATA_INSUFFICIENT"
        )


class ConfigurationError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="CONFIGURATION_ERROR")


class UpstreamUnavailableError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="UPSTREAM_UNAVAILABLE")


class FxUnavailableError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="FX_UNAVAILABLE")
